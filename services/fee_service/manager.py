# CREATE FILE: services/fee_service/manager.py

import threading
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import ValidationError

from utils.logging import get_logger

from .calculator import FeeCalculator
from .config import default_configuration, get_preset_configuration
from .models import (
    ConfigurationValidation,
    FeeBreakdown,
    FeeCalculationContext,
    FeeConfiguration,
    FeeMethod,
    FeeRule,
    FeeType,
    OrderCalculationResult,
)


def validate_configuration(configuration: FeeConfiguration) -> ConfigurationValidation:
    """Static checks to run before trusting a configuration; never mutates it"""
    errors: List[str] = []
    rules = configuration.fees

    seen = set()
    duplicate_ids = []
    for rule in rules:
        if rule.id in seen and rule.id not in duplicate_ids:
            duplicate_ids.append(rule.id)
        seen.add(rule.id)
    if duplicate_ids:
        errors.append(f"Duplicate fee IDs found: {', '.join(duplicate_ids)}")

    for rule in rules:
        if not rule.id or not rule.name or not rule.type or not rule.method:
            errors.append(f"Fee config {rule.id or 'unknown'} is missing required fields")

        if rule.method == FeeMethod.FIXED and rule.amount is None:
            errors.append(f"Fee config {rule.id} with 'fixed' method must have amount")

        if rule.method == FeeMethod.PERCENTAGE and rule.percentage is None:
            errors.append(f"Fee config {rule.id} with 'percentage' method must have percentage")

        if rule.method == FeeMethod.TIERED and not rule.tiers:
            errors.append(f"Fee config {rule.id} with 'tiered' method must have tiers")

        if rule.method == FeeMethod.CONDITIONAL and not rule.conditions:
            errors.append(f"Fee config {rule.id} with 'conditional' method must have conditions")

    return ConfigurationValidation(valid=not errors, errors=errors)


class FeeManager:
    """
    Owns one active FeeConfiguration and the calculator derived from it.

    Configurations and rules are immutable: every mutation builds a new
    configuration and a new calculator and swaps both references under a
    lock, so a calculation running concurrently sees either the old or the
    new rule list.
    """

    def __init__(self, configuration: Optional[FeeConfiguration] = None, logger=None):
        self.logger = logger or get_logger("fee_manager")
        self._lock = threading.RLock()
        self._configuration = configuration or default_configuration()
        self._calculator = self._build_calculator(self._configuration)

    def _build_calculator(self, configuration: FeeConfiguration) -> FeeCalculator:
        return FeeCalculator(
            configuration.fees,
            rounding_method=configuration.global_settings.rounding_method,
            logger=self.logger,
        )

    def _activate(self, configuration: FeeConfiguration):
        calculator = self._build_calculator(configuration)
        with self._lock:
            self._configuration = configuration
            self._calculator = calculator

    # Calculations

    def calculate_order_total(self, context: FeeCalculationContext) -> OrderCalculationResult:
        """Calculate order total with all applicable fees"""
        with self.logger.operation_context("calculate_order_total"):
            return self._calculator.calculate_fees(context)

    def get_fees_by_type(self, context: FeeCalculationContext, fee_type: Union[FeeType, str]) -> int:
        """Sum of applied fees of one type; 0 for a type no rule can produce"""
        try:
            fee_type = FeeType(fee_type)
        except ValueError:
            return 0
        return self.calculate_order_total(context).sum_by_type(fee_type)

    def get_delivery_fee(self, context: FeeCalculationContext) -> int:
        return self.get_fees_by_type(context, FeeType.DELIVERY)

    def get_tax_amount(self, context: FeeCalculationContext) -> int:
        return self.get_fees_by_type(context, FeeType.TAX)

    def get_fee_breakdown(self, context: FeeCalculationContext) -> FeeBreakdown:
        """Order total with only the fees meant for display"""
        result = self.calculate_order_total(context)
        return FeeBreakdown(
            subtotal=result.subtotal,
            fees=[fee for fee in result.fees if fee.show_in_breakdown],
            total=result.total,
        )

    # Configuration changes

    def update_configuration(self, new_configuration: FeeConfiguration):
        """Replace the whole configuration"""
        self._activate(new_configuration)
        self.logger.configuration_event("configuration_replaced",
                                        version=new_configuration.version,
                                        fee_count=len(new_configuration.fees))

    def update_fee_config(self, fee_config: FeeRule) -> bool:
        """Replace the rule with the same id; returns False when no such rule exists"""
        with self._lock:
            current = self._configuration
            index = next((i for i, rule in enumerate(current.fees) if rule.id == fee_config.id), None)
            if index is None:
                self.logger.warning("Fee config not found, update ignored", fee_id=fee_config.id)
                return False

            fees = list(current.fees)
            fees[index] = fee_config
            self._activate(current.model_copy(update={
                "fees": fees,
                "last_updated": datetime.now(timezone.utc),
            }))

        self.logger.configuration_event("fee_updated",
                                        version=current.version,
                                        fee_id=fee_config.id,
                                        enabled=fee_config.enabled)
        return True

    def toggle_fee(self, fee_id: str, enabled: bool) -> bool:
        """Enable or disable a fee, including one that is currently disabled"""
        with self._lock:
            rule = self.get_fee_config(fee_id)
            if rule is None:
                self.logger.warning("Fee config not found, toggle ignored", fee_id=fee_id)
                return False
            return self.update_fee_config(rule.model_copy(update={"enabled": enabled}))

    def load_preset(self, preset_name: str):
        """Swap in a named preset (BASIC, PREMIUM, FULL, RESTAURANT_OWNED)"""
        configuration = get_preset_configuration(preset_name)
        self._activate(configuration)
        self.logger.configuration_event("preset_loaded",
                                        version=configuration.version,
                                        preset=preset_name.upper())

    def export_configuration(self) -> str:
        return self._configuration.model_dump_json(by_alias=True, indent=2)

    def import_configuration(self, config_json: str) -> bool:
        """
        Replace the configuration from a JSON document.

        Fails closed: on malformed JSON or a document that does not match
        the schema, the current configuration stays active and False is
        returned.
        """
        try:
            configuration = FeeConfiguration.model_validate_json(config_json)
        except (ValidationError, ValueError, TypeError) as e:
            self.logger.error("Failed to import configuration", error=e)
            return False

        self.update_configuration(configuration)
        return True

    def validate_configuration(self) -> ConfigurationValidation:
        return validate_configuration(self._configuration)

    # Queries

    def get_configuration(self) -> FeeConfiguration:
        return self._configuration

    def get_fee_config(self, fee_id: str) -> Optional[FeeRule]:
        """Look up a rule by id in the full configuration (enabled or not)"""
        return next((rule for rule in self._configuration.fees if rule.id == fee_id), None)

    def get_all_fee_configs(self) -> List[FeeRule]:
        return list(self._configuration.fees)

    def get_enabled_fee_configs(self) -> List[FeeRule]:
        """Enabled rules in evaluation order"""
        return self._calculator.get_all_configs()
