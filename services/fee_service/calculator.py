# CREATE FILE: services/fee_service/calculator.py

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from utils.logging import get_logger

from .currency import format_currency, percentage_of
from .geo import calculate_delivery_fee
from .models import (
    ConditionOperator,
    FeeCalculationContext,
    FeeCondition,
    FeeMethod,
    FeeResult,
    FeeRule,
    FeeType,
    OrderCalculationResult,
    RoundingMethod,
)

DISTANCE_BASED_DELIVERY_ID = "distance_based_delivery"

# Known context fields a condition may reference; anything else is looked up in custom_data
_CONTEXT_FIELDS: Dict[str, Callable[[FeeCalculationContext], Any]] = {
    "subtotal": lambda ctx: ctx.subtotal,
    "restaurantId": lambda ctx: ctx.restaurant_id,
    "deliveryLevel": lambda ctx: ctx.delivery_level,
    "paymentMethod": lambda ctx: ctx.payment_method,
    "userType": lambda ctx: ctx.user_type,
    "orderTime": lambda ctx: ctx.order_time,
    "deliveryDistance": lambda ctx: ctx.delivery_distance,
    "userLocation": lambda ctx: ctx.user_location,
    "restaurantLocation": lambda ctx: ctx.restaurant_location,
}
_CONTEXT_FIELDS.update({
    "restaurant_id": _CONTEXT_FIELDS["restaurantId"],
    "delivery_level": _CONTEXT_FIELDS["deliveryLevel"],
    "payment_method": _CONTEXT_FIELDS["paymentMethod"],
    "user_type": _CONTEXT_FIELDS["userType"],
    "order_time": _CONTEXT_FIELDS["orderTime"],
    "delivery_distance": _CONTEXT_FIELDS["deliveryDistance"],
    "user_location": _CONTEXT_FIELDS["userLocation"],
    "restaurant_location": _CONTEXT_FIELDS["restaurantLocation"],
})


@dataclass
class FeeEvaluation:
    amount: int
    applied: bool
    reason: str


def _to_number(value: Any) -> Optional[float]:
    """Numeric cast used by greater_than/less_than; None when the value has no number"""
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        return value.timestamp() * 1000
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


class FeeCalculator:
    """Evaluates enabled fee rules in priority order against an order context"""

    def __init__(self, rules: Iterable[FeeRule],
                 rounding_method: RoundingMethod = RoundingMethod.ROUND,
                 logger=None):
        self.rounding_method = RoundingMethod(rounding_method)
        self.logger = logger or get_logger("fee_calculator")
        # sorted() is stable, so equal priorities keep their list order
        self._rules: List[FeeRule] = sorted(
            (rule for rule in rules if rule.enabled),
            key=lambda rule: rule.priority
        )
        self._handlers = {
            FeeMethod.FIXED: self._fixed_fee,
            FeeMethod.PERCENTAGE: self._percentage_fee,
            FeeMethod.TIERED: self._tiered_fee,
            FeeMethod.CONDITIONAL: self._conditional_fee,
        }

    def calculate_fees(self, context: FeeCalculationContext) -> OrderCalculationResult:
        """Calculate all applicable fees for an order"""
        fees: List[FeeResult] = []
        running_total = context.subtotal

        for rule in self._rules:
            result = self.evaluate_rule(rule, context, running_total)
            self.logger.debug("Fee rule evaluated",
                              fee_id=rule.id,
                              applied=result.applied,
                              amount=result.amount,
                              reason=result.reason)

            if result.applied:
                fees.append(result)
                running_total += result.amount

        return OrderCalculationResult(subtotal=context.subtotal, fees=fees, total=running_total)

    def evaluate_rule(self, rule: FeeRule, context: FeeCalculationContext,
                      current_total: int) -> FeeResult:
        """
        Evaluate one rule.

        All amounts are derived from context.subtotal; current_total is the
        running total after earlier rules and is not used by any method yet.
        """
        if rule.min_order_value is not None and context.subtotal < rule.min_order_value:
            return self._create_fee_result(
                rule, 0, False, f"Order value below minimum ({rule.min_order_value})")

        if rule.max_order_value is not None and context.subtotal > rule.max_order_value:
            return self._create_fee_result(
                rule, 0, False, f"Order value above maximum ({rule.max_order_value})")

        handler = self._handlers.get(rule.method)
        if handler is None:
            evaluation = FeeEvaluation(0, False, f"Unknown calculation method: {rule.method}")
        else:
            evaluation = handler(rule, context)

        amount, applied, reason = evaluation.amount, evaluation.applied, evaluation.reason

        if applied and rule.min_amount is not None and amount < rule.min_amount:
            amount = rule.min_amount
            reason += f" (adjusted to minimum {rule.min_amount})"

        if applied and rule.max_amount is not None and amount > rule.max_amount:
            amount = rule.max_amount
            reason += f" (adjusted to maximum {rule.max_amount})"
            applied = amount > 0

        # Discounts are configured as positive magnitudes and reduce the total
        if applied and rule.type == FeeType.DISCOUNT:
            amount = -abs(amount)

        return self._create_fee_result(rule, amount, applied, reason)

    def _amount_from(self, amount: Optional[int], percentage: Optional[float], subtotal: int) -> int:
        if amount:
            return amount
        if percentage:
            return percentage_of(subtotal, percentage, self.rounding_method)
        return 0

    def _fixed_fee(self, rule: FeeRule, context: FeeCalculationContext) -> FeeEvaluation:
        amount = rule.amount or 0
        if amount > 0:
            return FeeEvaluation(amount, True, f"Fixed fee of {amount} minor units")
        return FeeEvaluation(amount, False, "Fixed fee is zero")

    def _percentage_fee(self, rule: FeeRule, context: FeeCalculationContext) -> FeeEvaluation:
        if not rule.percentage:
            return FeeEvaluation(0, False, "No percentage configured")

        amount = percentage_of(context.subtotal, rule.percentage, self.rounding_method)
        if amount > 0:
            return FeeEvaluation(amount, True, f"{rule.percentage:g}% of subtotal")
        return FeeEvaluation(amount, False, "Percentage calculation resulted in zero")

    def _tiered_fee(self, rule: FeeRule, context: FeeCalculationContext) -> FeeEvaluation:
        if not rule.tiers:
            return FeeEvaluation(0, False, "No tiers configured")

        subtotal = context.subtotal
        tier = next(
            (t for t in rule.tiers
             if subtotal >= t.min_order_value
             and (t.max_order_value is None or subtotal <= t.max_order_value)),
            None
        )
        if tier is None:
            return FeeEvaluation(0, False, "No applicable tier found")

        amount = self._amount_from(tier.amount, tier.percentage, subtotal)
        upper = tier.max_order_value if tier.max_order_value is not None else "∞"
        return FeeEvaluation(amount, amount > 0, f"Tiered fee: {tier.min_order_value}-{upper}")

    def _conditional_fee(self, rule: FeeRule, context: FeeCalculationContext) -> FeeEvaluation:
        if rule.id == DISTANCE_BASED_DELIVERY_ID and context.delivery_distance is not None:
            amount = calculate_delivery_fee(context.delivery_distance, context.subtotal)
            return FeeEvaluation(
                amount,
                amount > 0,
                f"Distance-based delivery: {context.delivery_distance}km, "
                f"order value: {format_currency(context.subtotal)}"
            )

        if not rule.conditions:
            return FeeEvaluation(0, False, "No conditions configured")

        for condition in rule.conditions:
            if self.evaluate_condition(condition, context):
                amount = self._amount_from(condition.amount, condition.percentage, context.subtotal)
                return FeeEvaluation(
                    amount,
                    amount > 0,
                    f"Condition met: {condition.field} {condition.operator.value} {condition.value}"
                )

        return FeeEvaluation(0, False, "No conditions met")

    def evaluate_condition(self, condition: FeeCondition, context: FeeCalculationContext) -> bool:
        field_value = self.get_field_value(condition.field, context)
        operator = condition.operator

        if operator == ConditionOperator.EQUALS:
            return field_value == condition.value
        if operator == ConditionOperator.NOT_EQUALS:
            return field_value != condition.value
        if operator == ConditionOperator.IN:
            return isinstance(condition.value, list) and field_value in condition.value
        if operator == ConditionOperator.NOT_IN:
            return isinstance(condition.value, list) and field_value not in condition.value
        if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
            left, right = _to_number(field_value), _to_number(condition.value)
            if left is None or right is None:
                return False
            return left > right if operator == ConditionOperator.GREATER_THAN else left < right
        return False

    @staticmethod
    def get_field_value(field: str, context: FeeCalculationContext) -> Any:
        resolver = _CONTEXT_FIELDS.get(field)
        if resolver is not None:
            return resolver(context)
        return context.custom_data.get(field)

    def _create_fee_result(self, rule: FeeRule, amount: int, applied: bool, reason: str) -> FeeResult:
        return FeeResult(
            id=rule.id,
            name=rule.name,
            type=rule.type,
            method=rule.method,
            amount=amount,
            applied=applied,
            reason=reason,
            display_name=rule.display_name or rule.name,
            description=rule.description,
            show_in_breakdown=rule.show_in_breakdown,
        )

    def get_fee_config(self, fee_id: str) -> Optional[FeeRule]:
        return next((rule for rule in self._rules if rule.id == fee_id), None)

    def get_all_configs(self) -> List[FeeRule]:
        return list(self._rules)
