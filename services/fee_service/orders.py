# CREATE FILE: services/fee_service/orders.py

"""Order-level helpers: context building, storage totals and drift checks"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from .geo import MAX_DELIVERY_RADIUS_KM, calculate_distance, is_delivery_possible
from .manager import FeeManager
from .models import (
    Coordinates,
    DeliveryLevel,
    FeeCalculationContext,
    FeeMethod,
    FeeResult,
    FeeType,
    OrderCalculationResult,
    OrderValidationResult,
    StoredOrderTotals,
)


class DeliveryNotAvailableError(ValueError):
    """Raised when the restaurant is outside the delivery radius"""

    def __init__(self, distance_km: float, max_radius_km: float):
        self.distance_km = distance_km
        self.max_radius_km = max_radius_km
        super().__init__(
            f"Delivery not available beyond {max_radius_km:g}km radius (distance {distance_km}km)"
        )


class CartLine(BaseModel):
    menu_item_id: Optional[str] = None
    price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


def cart_subtotal(lines: Iterable[CartLine]) -> int:
    return sum(line.price * line.quantity for line in lines)


def create_order_context(subtotal: int, **options: Any) -> FeeCalculationContext:
    """Build a pricing context; order_time defaults to now"""
    if options.get("order_time") is None:
        options["order_time"] = datetime.now(timezone.utc)
    if options.get("custom_data") is None:
        options["custom_data"] = {}
    return FeeCalculationContext(subtotal=subtotal, **options)


def build_delivery_context(lines: Iterable[CartLine],
                           user_location: Coordinates,
                           restaurant_location: Coordinates,
                           max_radius_km: float = MAX_DELIVERY_RADIUS_KM,
                           **options: Any) -> FeeCalculationContext:
    """
    Context for a delivery order: measures the distance between user and
    restaurant and rejects orders outside the delivery radius.
    """
    distance = calculate_distance(user_location, restaurant_location)
    if not is_delivery_possible(distance, max_radius_km):
        raise DeliveryNotAvailableError(distance, max_radius_km)

    options.setdefault("delivery_level", DeliveryLevel.STANDARD)
    return create_order_context(
        cart_subtotal(lines),
        delivery_distance=distance,
        user_location=user_location,
        restaurant_location=restaurant_location,
        **options
    )


def calculate_cart_totals(lines: Iterable[CartLine], manager: Optional[FeeManager] = None,
                          **options: Any) -> OrderCalculationResult:
    """Price a cart; delivery level defaults to STANDARD"""
    options.setdefault("delivery_level", DeliveryLevel.STANDARD)
    context = create_order_context(cart_subtotal(lines), **options)
    return (manager or FeeManager()).calculate_order_total(context)


def apply_order_adjustments(result: OrderCalculationResult, tip: int = 0,
                            coupon_discount: int = 0,
                            coupon_code: Optional[str] = None) -> OrderCalculationResult:
    """
    Append a tip line and a pre-computed coupon discount line.

    The coupon discount is taken as given (validated elsewhere) and capped
    at the subtotal so the order total cannot go below the fees.
    """
    fees = list(result.fees)
    total = result.total

    if tip > 0:
        fees.append(FeeResult(
            id="tip",
            name="Tip",
            type=FeeType.TIP,
            method=FeeMethod.FIXED,
            amount=tip,
            applied=True,
            reason=f"Customer tip of {tip} minor units",
            display_name="Tip",
        ))
        total += tip

    discount = min(abs(coupon_discount), result.subtotal)
    if discount > 0:
        fees.append(FeeResult(
            id="coupon_discount",
            name="Coupon Discount",
            type=FeeType.DISCOUNT,
            method=FeeMethod.FIXED,
            amount=-discount,
            applied=True,
            reason=f"Coupon {coupon_code} applied" if coupon_code else "Coupon applied",
            display_name=f"Coupon ({coupon_code})" if coupon_code else "Coupon",
        ))
        total -= discount

    return OrderCalculationResult(subtotal=result.subtotal, fees=fees, total=total)


def order_totals_for_storage(result: OrderCalculationResult) -> StoredOrderTotals:
    """Totals columns for an order row; discount is stored as a positive amount"""
    return StoredOrderTotals(
        subtotal=result.subtotal,
        delivery_fee=result.sum_by_type(FeeType.DELIVERY),
        tax=result.sum_by_type(FeeType.TAX),
        tip=result.sum_by_type(FeeType.TIP),
        discount=-result.sum_by_type(FeeType.DISCOUNT),
        total=result.total,
    )


def get_fee_breakdown_for_display(result: OrderCalculationResult) -> Dict[str, Any]:
    fee_summary: Dict[str, Dict[str, Any]] = {}
    for fee in result.fees:
        summary = fee_summary.setdefault(
            fee.type.value, {"amount": 0, "count": 0, "display_name": fee.display_name}
        )
        summary["amount"] += fee.amount
        summary["count"] += 1

    return {
        "subtotal": result.subtotal,
        "fees": [fee for fee in result.fees if fee.show_in_breakdown],
        "total": result.total,
        "fee_summary": fee_summary,
    }


def validate_order_calculation(stored_order: StoredOrderTotals,
                               calculated_order: OrderCalculationResult,
                               tolerance: int = 1) -> OrderValidationResult:
    """
    Compare a persisted order's totals against a fresh calculation.

    Only reports discrepancies larger than tolerance (minor units); the
    stored order is never modified.
    """
    checks = [
        ("Subtotal", stored_order.subtotal, calculated_order.subtotal),
        ("Delivery fee", stored_order.delivery_fee, calculated_order.sum_by_type(FeeType.DELIVERY)),
        ("Tax", stored_order.tax, calculated_order.sum_by_type(FeeType.TAX)),
        ("Total", stored_order.total, calculated_order.total),
    ]

    discrepancies = [
        f"{label} mismatch: stored {stored}, calculated {calculated}"
        for label, stored, calculated in checks
        if abs(stored - calculated) > tolerance
    ]

    return OrderValidationResult(valid=not discrepancies, discrepancies=discrepancies)
