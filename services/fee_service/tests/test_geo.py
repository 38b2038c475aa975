# CREATE FILE: services/fee_service/tests/test_geo.py

import pytest
from pydantic import ValidationError

from services.fee_service.geo import (
    amount_for_free_base_delivery,
    calculate_delivery_fee,
    calculate_distance,
    is_delivery_possible,
)
from services.fee_service.models import Coordinates


class TestDistance:

    @pytest.fixture
    def mumbai(self):
        return Coordinates(latitude=19.0760, longitude=72.8777)

    @pytest.fixture
    def delhi(self):
        return Coordinates(latitude=28.7041, longitude=77.1025)

    def test_mumbai_to_delhi(self, mumbai, delhi):
        """Roughly 1150km apart"""
        distance = calculate_distance(mumbai, delhi)
        assert abs(distance - 1150) <= 100

    def test_same_coordinates(self, mumbai):
        assert calculate_distance(mumbai, mumbai) == 0

    def test_symmetry(self, mumbai, delhi):
        assert calculate_distance(mumbai, delhi) == calculate_distance(delhi, mumbai)

    def test_rounded_to_two_decimals(self):
        a = Coordinates(latitude=12.9756, longitude=77.6050)
        b = Coordinates(latitude=12.9856, longitude=77.6050)
        distance = calculate_distance(a, b)
        assert distance == round(distance, 2)
        assert 1.0 < distance < 1.2

    def test_out_of_range_coordinates_rejected(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=91.0, longitude=0.0)
        with pytest.raises(ValidationError):
            Coordinates(latitude=0.0, longitude=-180.5)


class TestDeliveryFee:

    def test_below_threshold_adds_base_fee(self):
        # ₹150 order, 2km: ₹10 base + ₹20 distance
        assert calculate_delivery_fee(2, 15000) == 3000

    def test_above_threshold_waives_base_fee_only(self):
        # ₹250 order, 3km: ₹0 base + ₹30 distance
        assert calculate_delivery_fee(3, 25000) == 3000

    def test_zero_distance(self):
        assert calculate_delivery_fee(0, 15000) == 1000
        assert calculate_delivery_fee(0, 25000) == 0

    def test_partial_kilometre_rounds_up(self):
        assert calculate_delivery_fee(0.3, 25000) == 1000
        assert calculate_delivery_fee(2.01, 25000) == 3000

    def test_threshold_boundary(self):
        assert calculate_delivery_fee(1, 19899) == 2000
        assert calculate_delivery_fee(1, 19900) == 1000

    def test_delivery_radius(self):
        assert is_delivery_possible(4.99)
        assert is_delivery_possible(5.0)
        assert not is_delivery_possible(5.01)
        assert is_delivery_possible(7.5, max_radius_km=10)

    def test_amount_for_free_base_delivery(self):
        assert amount_for_free_base_delivery(15000) == 4900
        assert amount_for_free_base_delivery(19900) == 0
        assert amount_for_free_base_delivery(25000) == 0
