# CREATE FILE: services/fee_service/geo.py

"""Distance calculation and the distance-based delivery fee policy"""

import math

from .models import Coordinates

EARTH_RADIUS_KM = 6371

# Amounts in minor units (paise)
BASE_DELIVERY_FEE = 1000          # ₹10 flat fee below the threshold
PER_KM_FEE = 1000                 # ₹10 per started kilometre
FREE_DELIVERY_THRESHOLD = 19900   # ₹199 waives the flat fee only

MAX_DELIVERY_RADIUS_KM = 5.0


def calculate_distance(coord1: Coordinates, coord2: Coordinates) -> float:
    """
    Calculate distance between two coordinates using the Haversine formula

    Args:
        coord1: First coordinate (user location)
        coord2: Second coordinate (restaurant location)

    Returns:
        Distance in kilometers, rounded to 2 decimal places
    """
    d_lat = math.radians(coord2.latitude - coord1.latitude)
    d_lon = math.radians(coord2.longitude - coord1.longitude)

    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(coord1.latitude)) * math.cos(math.radians(coord2.latitude)) *
         math.sin(d_lon / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_KM * c, 2)


def calculate_delivery_fee(distance_km: float, order_value: int) -> int:
    """
    Delivery fee in minor units for a distance and order value

    Example:
        distance_km=2, order_value=15000 (₹150)
        → base 1000 + ceil(2) * 1000 = 3000

        distance_km=0.4, order_value=25000 (₹250)
        → base 0 + ceil(0.4) * 1000 = 1000
    """
    base_fee = BASE_DELIVERY_FEE if order_value < FREE_DELIVERY_THRESHOLD else 0
    distance_fee = math.ceil(distance_km) * PER_KM_FEE

    return base_fee + distance_fee


def is_delivery_possible(distance_km: float, max_radius_km: float = MAX_DELIVERY_RADIUS_KM) -> bool:
    return distance_km <= max_radius_km


def amount_for_free_base_delivery(subtotal: int) -> int:
    """How much more the cart needs before the flat delivery fee is waived"""
    return max(0, FREE_DELIVERY_THRESHOLD - subtotal)
