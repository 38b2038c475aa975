# CREATE FILE: services/fee_service/models.py

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FeeType(str, Enum):
    DELIVERY = "delivery"
    TAX = "tax"
    SERVICE = "service"
    PLATFORM = "platform"
    PACKAGING = "packaging"
    TIP = "tip"
    DISCOUNT = "discount"
    SURCHARGE = "surcharge"


class FeeMethod(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    TIERED = "tiered"
    CONDITIONAL = "conditional"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class DeliveryLevel(str, Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    PRIORITY = "PRIORITY"


class UserType(str, Enum):
    REGULAR = "regular"
    PREMIUM = "premium"
    VIP = "vip"


class RoundingMethod(str, Enum):
    ROUND = "round"
    FLOOR = "floor"
    CEIL = "ceil"


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either spelling on input"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinates(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class FeeTier(CamelModel):
    model_config = ConfigDict(frozen=True)

    min_order_value: int = Field(0, ge=0)
    max_order_value: Optional[int] = None
    amount: Optional[int] = None
    percentage: Optional[float] = Field(None, ge=0, le=100)


class FeeCondition(CamelModel):
    model_config = ConfigDict(frozen=True)

    field: str
    operator: ConditionOperator
    value: Any = None
    amount: Optional[int] = None
    percentage: Optional[float] = Field(None, ge=0, le=100)


class FeeRule(CamelModel):
    """
    Declarative description of one fee.

    Exactly one payload is meaningful, selected by method:
    amount (fixed), percentage (percentage), tiers (tiered) or
    conditions (conditional). min_amount/max_amount clamp the computed
    fee; min_order_value/max_order_value gate the rule on the subtotal.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: FeeType
    method: FeeMethod
    enabled: bool = True
    priority: int = 0

    amount: Optional[int] = None
    percentage: Optional[float] = Field(None, ge=0, le=100)
    tiers: Optional[List[FeeTier]] = None
    conditions: Optional[List[FeeCondition]] = None

    display_name: Optional[str] = None
    description: Optional[str] = None
    show_in_breakdown: bool = True

    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    min_order_value: Optional[int] = None
    max_order_value: Optional[int] = None


class GlobalSettings(CamelModel):
    model_config = ConfigDict(frozen=True)

    currency: str = "INR"
    rounding_method: RoundingMethod = RoundingMethod.ROUND
    display_precision: int = Field(2, ge=0, le=4)


class FeeConfiguration(CamelModel):
    model_config = ConfigDict(frozen=True)

    version: str = "1.0.0"
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    fees: List[FeeRule] = Field(default_factory=list)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)


class FeeCalculationContext(CamelModel):
    """One pricing request; subtotal in minor units"""
    subtotal: int = Field(..., ge=0)
    restaurant_id: Optional[str] = None
    delivery_level: Optional[DeliveryLevel] = None
    payment_method: Optional[str] = None
    user_type: Optional[UserType] = None
    order_time: Optional[datetime] = None
    delivery_distance: Optional[float] = Field(None, ge=0)
    user_location: Optional[Coordinates] = None
    restaurant_location: Optional[Coordinates] = None
    custom_data: Dict[str, Any] = Field(default_factory=dict)


class FeeResult(CamelModel):
    id: str
    name: str
    type: FeeType
    method: FeeMethod
    amount: int
    applied: bool
    reason: str
    display_name: str
    description: Optional[str] = None
    show_in_breakdown: bool = True


class OrderCalculationResult(CamelModel):
    subtotal: int
    fees: List[FeeResult]
    total: int

    def sum_by_type(self, fee_type: FeeType) -> int:
        return sum(fee.amount for fee in self.fees if fee.applied and fee.type == fee_type)


class FeeBreakdown(CamelModel):
    subtotal: int
    fees: List[FeeResult]
    total: int


class ConfigurationValidation(CamelModel):
    valid: bool
    errors: List[str]


class StoredOrderTotals(CamelModel):
    """Totals columns as persisted on an order row"""
    subtotal: int
    delivery_fee: int = 0
    tax: int = 0
    tip: int = 0
    discount: int = 0
    total: int


class OrderValidationResult(CamelModel):
    valid: bool
    discrepancies: List[str]
