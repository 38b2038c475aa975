#!/usr/bin/env python3
"""
Integration test script for order pricing

This script tests the full workflow:
1. Build a delivery context from a cart and two locations
2. Price it with the default fee configuration
3. Add tip and coupon lines and derive the stored totals
4. Re-check the stored order after a configuration change (drift)
"""

import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__)))
sys.path.insert(0, project_root)

from services.fee_service.manager import FeeManager
from services.fee_service.models import Coordinates
from services.fee_service.orders import (
    CartLine,
    apply_order_adjustments,
    build_delivery_context,
    order_totals_for_storage,
    validate_order_calculation,
)
from services.fee_service.currency import format_currency


def test_integration():
    """Test complete pricing workflow"""

    print("=" * 70)
    print("ORDER PRICING INTEGRATION TEST")
    print("=" * 70)

    manager = FeeManager()

    print("\n1. Building delivery context...")
    cart = [
        CartLine(menu_item_id="veg_biryani", price=9000, quantity=1),
        CartLine(menu_item_id="gulab_jamun", price=3000, quantity=2),
    ]
    restaurant = Coordinates(latitude=12.9716, longitude=77.5946)
    user = Coordinates(latitude=12.9850, longitude=77.5946)
    context = build_delivery_context(cart, user, restaurant)
    print(f"   Subtotal {format_currency(context.subtotal)}, distance {context.delivery_distance}km")

    assert context.subtotal == 15000
    assert 1.0 < context.delivery_distance < 2.0

    print("\n2. Pricing with default configuration...")
    result = manager.calculate_order_total(context)
    for fee in result.fees:
        print(f"   {fee.display_name}: {format_currency(fee.amount)} ({fee.reason})")

    # ₹10 base (below ₹199) + 2 started km at ₹10
    assert result.sum_by_type("delivery") == 3000
    assert result.total == 18000

    print("\n3. Adding tip and coupon...")
    final = apply_order_adjustments(result, tip=2000, coupon_discount=1000, coupon_code="FIRST10")
    stored = order_totals_for_storage(final)
    print(f"   Stored totals: {stored.model_dump()}")

    assert stored.total == 19000
    assert stored.total == final.subtotal + sum(fee.amount for fee in final.fees)

    print("\n4. Checking drift after enabling GST...")
    assert validate_order_calculation(stored, result).valid is False  # tip/coupon are not recomputed
    baseline = order_totals_for_storage(result)
    assert validate_order_calculation(baseline, manager.calculate_order_total(context)).valid

    manager.toggle_fee("tax_gst", True)
    report = validate_order_calculation(baseline, manager.calculate_order_total(context))
    for discrepancy in report.discrepancies:
        print(f"   ⚠️  {discrepancy}")

    assert not report.valid
    assert "Tax mismatch: stored 0, calculated 1500" in report.discrepancies

    print("\n" + "=" * 70)
    print("✅ INTEGRATION TEST COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    test_integration()
