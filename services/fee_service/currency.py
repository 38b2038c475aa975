# CREATE FILE: services/fee_service/currency.py

"""Minor-unit money helpers (amounts are integer paise for INR)"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, ROUND_FLOOR, ROUND_CEILING

from .models import RoundingMethod

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

_DECIMAL_ROUNDING = {
    RoundingMethod.ROUND: ROUND_HALF_UP,
    RoundingMethod.FLOOR: ROUND_FLOOR,
    RoundingMethod.CEIL: ROUND_CEILING,
}


def apply_rounding(value: Decimal, method: RoundingMethod = RoundingMethod.ROUND) -> int:
    """Round a Decimal amount to whole minor units"""
    rounding = _DECIMAL_ROUNDING.get(RoundingMethod(method), ROUND_HALF_UP)
    return int(value.quantize(Decimal('1'), rounding=rounding))


def percentage_of(amount: int, percentage: float,
                  method: RoundingMethod = RoundingMethod.ROUND) -> int:
    """percentage (0-100) of an integer minor-unit amount"""
    value = Decimal(amount) * Decimal(str(percentage)) / Decimal('100')
    return apply_rounding(value, method)


def _group_digits(digits: str, currency: str) -> str:
    if currency != "INR" or len(digits) <= 3:
        return "{:,}".format(int(digits))

    # Indian grouping: last three digits, then pairs (1,50,000)
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(minor_units: int, currency: str = "INR", precision: int = 2) -> str:
    """
    Format a minor-unit amount for display.

    Example:
        format_currency(15000) -> "₹150.00"
        format_currency(15000000) -> "₹1,50,000.00"
    """
    amount = (Decimal(minor_units or 0) / Decimal('100')).quantize(
        Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP
    )
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.{precision}f}".partition(".")
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    formatted = _group_digits(whole, currency)
    if fraction:
        formatted = f"{formatted}.{fraction}"
    return f"{sign}{symbol}{formatted}"


def parse_currency(text: str) -> int:
    """Parse a displayed amount ("₹1,50,000.50") back into minor units; 0 if unparsable"""
    if not text:
        return 0

    normalized = re.sub(r"[^0-9.\-]", "", text)
    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return 0

    return apply_rounding(value * Decimal('100'))
