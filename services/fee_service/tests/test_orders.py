# CREATE FILE: services/fee_service/tests/test_orders.py

import pytest

from services.fee_service.manager import FeeManager
from services.fee_service.models import Coordinates, DeliveryLevel, FeeType, StoredOrderTotals
from services.fee_service.orders import (
    CartLine,
    DeliveryNotAvailableError,
    apply_order_adjustments,
    build_delivery_context,
    calculate_cart_totals,
    cart_subtotal,
    create_order_context,
    get_fee_breakdown_for_display,
    order_totals_for_storage,
    validate_order_calculation,
)


class TestOrderContext:

    @pytest.fixture
    def cart(self):
        """₹150 cart"""
        return [
            CartLine(menu_item_id="paneer_tikka", price=5000, quantity=2),
            CartLine(menu_item_id="lassi", price=2500, quantity=2),
        ]

    @pytest.fixture
    def restaurant(self):
        return Coordinates(latitude=12.9756, longitude=77.6050)

    def test_cart_subtotal(self, cart):
        assert cart_subtotal(cart) == 15000
        assert cart_subtotal([]) == 0

    def test_create_order_context_defaults(self):
        context = create_order_context(15000, restaurant_id="r1")
        assert context.order_time is not None
        assert context.custom_data == {}
        assert context.restaurant_id == "r1"

    def test_calculate_cart_totals(self, cart):
        result = calculate_cart_totals(cart, delivery_distance=2)
        assert result.subtotal == 15000
        assert result.sum_by_type(FeeType.DELIVERY) == 3000
        assert result.total == 18000

    def test_calculate_cart_totals_defaults_to_standard_delivery(self, cart):
        manager = FeeManager()
        manager.load_preset("BASIC")
        manager.toggle_fee("delivery_fee_standard", True)

        result = calculate_cart_totals(cart, manager=manager)
        assert result.sum_by_type(FeeType.DELIVERY) == 500

        express = calculate_cart_totals(cart, manager=manager, delivery_level=DeliveryLevel.EXPRESS)
        assert express.sum_by_type(FeeType.DELIVERY) == 800

    def test_build_delivery_context(self, cart, restaurant):
        user = Coordinates(latitude=12.9856, longitude=77.6050)
        context = build_delivery_context(cart, user, restaurant)

        assert context.subtotal == 15000
        assert context.delivery_distance == pytest.approx(1.11, abs=0.01)
        assert context.delivery_level == DeliveryLevel.STANDARD
        assert context.user_location == user

        # ceil(1.11) = 2km plus the ₹10 base fee
        assert FeeManager().get_delivery_fee(context) == 3000

    def test_delivery_outside_radius(self, cart, restaurant):
        far_user = Coordinates(latitude=13.0756, longitude=77.6050)
        with pytest.raises(DeliveryNotAvailableError) as excinfo:
            build_delivery_context(cart, far_user, restaurant)
        assert excinfo.value.distance_km > 5
        assert "5km radius" in str(excinfo.value)


class TestOrderAdjustments:

    @pytest.fixture
    def result(self):
        return calculate_cart_totals([CartLine(price=15000, quantity=1)], delivery_distance=2)

    def test_tip_and_coupon(self, result):
        adjusted = apply_order_adjustments(result, tip=2000, coupon_discount=1500, coupon_code="WELCOME50")

        assert adjusted.total == result.total + 2000 - 1500
        assert adjusted.total == adjusted.subtotal + sum(fee.amount for fee in adjusted.fees)

        coupon = adjusted.fees[-1]
        assert coupon.type == FeeType.DISCOUNT
        assert coupon.amount == -1500
        assert coupon.display_name == "Coupon (WELCOME50)"

    def test_coupon_capped_at_subtotal(self, result):
        adjusted = apply_order_adjustments(result, coupon_discount=50000)
        assert adjusted.sum_by_type(FeeType.DISCOUNT) == -15000

    def test_no_adjustments(self, result):
        assert apply_order_adjustments(result) == result

    def test_storage_totals(self, result):
        adjusted = apply_order_adjustments(result, tip=2000, coupon_discount=1500)
        stored = order_totals_for_storage(adjusted)

        assert stored.subtotal == 15000
        assert stored.delivery_fee == 3000
        assert stored.tax == 0
        assert stored.tip == 2000
        assert stored.discount == 1500
        assert stored.total == 18500

    def test_display_breakdown(self, result):
        display = get_fee_breakdown_for_display(apply_order_adjustments(result, tip=1000))

        assert display["total"] == 19000
        assert display["fee_summary"]["delivery"] == {"amount": 3000, "count": 1, "display_name": "Delivery Fee"}
        assert display["fee_summary"]["tip"]["amount"] == 1000


class TestDriftValidation:

    @pytest.fixture
    def fresh(self):
        return calculate_cart_totals([CartLine(price=15000, quantity=1)], delivery_distance=2)

    def test_matching_order(self, fresh):
        stored = StoredOrderTotals(subtotal=15000, delivery_fee=3000, tax=0, total=18000)
        report = validate_order_calculation(stored, fresh)
        assert report.valid
        assert report.discrepancies == []

    def test_within_tolerance(self, fresh):
        stored = StoredOrderTotals(subtotal=15000, delivery_fee=3001, tax=1, total=18001)
        assert validate_order_calculation(stored, fresh).valid

    def test_delivery_fee_drift(self, fresh):
        stored = StoredOrderTotals(subtotal=15000, delivery_fee=2000, tax=0, total=17000)
        report = validate_order_calculation(stored, fresh)

        assert not report.valid
        assert report.discrepancies == [
            "Delivery fee mismatch: stored 2000, calculated 3000",
            "Total mismatch: stored 17000, calculated 18000",
        ]

    def test_custom_tolerance(self, fresh):
        stored = StoredOrderTotals(subtotal=15000, delivery_fee=2990, tax=0, total=17990)
        assert not validate_order_calculation(stored, fresh).valid
        assert validate_order_calculation(stored, fresh, tolerance=10).valid

    def test_stored_order_not_modified(self, fresh):
        stored = StoredOrderTotals(subtotal=14000, delivery_fee=2000, tax=0, total=16000)
        before = stored.model_dump()
        validate_order_calculation(stored, fresh)
        assert stored.model_dump() == before
