# CREATE FILE: services/fee_service/config.py

"""Default fee catalog, named presets and configuration file loading"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic.alias_generators import to_camel

from utils.logging import get_logger

from .models import FeeConfiguration, FeeRule, GlobalSettings

logger = get_logger("fee_config")

CONFIG_VERSION = "1.0.0"

# Amounts in paise. Only the free-delivery threshold and the distance-based
# delivery rule are enabled; the threshold rule never yields an amount, so
# at most one delivery line is produced.
DEFAULT_FEE_RULES: List[Dict[str, Any]] = [
    {
        "id": "delivery_fee_standard",
        "name": "Delivery Fee (Standard)",
        "type": "delivery",
        "method": "conditional",
        "enabled": False,
        "priority": 1,
        "displayName": "Delivery Fee",
        "description": "Standard delivery charge",
        "showInBreakdown": True,
        "conditions": [
            {"field": "deliveryLevel", "operator": "equals", "value": "STANDARD", "amount": 500},
            {"field": "deliveryLevel", "operator": "equals", "value": "EXPRESS", "amount": 800},
            {"field": "deliveryLevel", "operator": "equals", "value": "PRIORITY", "amount": 1200},
        ],
        "minAmount": 0,
        "maxAmount": 2000,
    },
    {
        "id": "tax_gst",
        "name": "GST Tax",
        "type": "tax",
        "method": "percentage",
        "enabled": False,
        "priority": 2,
        "percentage": 10,
        "displayName": "Tax (GST)",
        "description": "Goods and Services Tax",
        "showInBreakdown": True,
        "minAmount": 0,
    },
    {
        "id": "service_charge",
        "name": "Service Charge",
        "type": "service",
        "method": "percentage",
        "enabled": False,
        "priority": 3,
        "percentage": 5,  # earlier catalogs used 0; PREMIUM and RESTAURANT_OWNED now add 5%
        "displayName": "Service Charge",
        "description": "Restaurant service charge",
        "showInBreakdown": True,
        "minAmount": 0,
        "maxAmount": 1000,
    },
    {
        "id": "platform_fee",
        "name": "Platform Fee",
        "type": "platform",
        "method": "tiered",
        "enabled": False,
        "priority": 4,
        "displayName": "Platform Fee",
        "description": "Platform usage fee",
        "showInBreakdown": True,
        "tiers": [
            {"minOrderValue": 0, "maxOrderValue": 1000, "amount": 50},
            {"minOrderValue": 1000, "maxOrderValue": 5000, "amount": 100},
            {"minOrderValue": 5000, "amount": 200},
        ],
    },
    {
        "id": "packaging_fee",
        "name": "Packaging Fee",
        "type": "packaging",
        "method": "fixed",
        "enabled": False,
        "priority": 5,
        "amount": 50,
        "displayName": "Packaging Fee",
        "description": "Eco-friendly packaging charge",
        "showInBreakdown": True,
        "minAmount": 0,
        "maxAmount": 100,
    },
    {
        "id": "free_delivery_threshold",
        "name": "Free Delivery Threshold",
        "type": "delivery",
        "method": "conditional",
        "enabled": True,
        "priority": 0,
        "displayName": "Delivery Fee",
        "description": "Free delivery for orders ≥₹199",
        "showInBreakdown": True,
        "conditions": [
            {"field": "subtotal", "operator": "greater_than", "value": 19899, "amount": 0},
        ],
    },
    {
        "id": "distance_based_delivery",
        "name": "Distance-Based Delivery Fee",
        "type": "delivery",
        "method": "conditional",
        "enabled": True,
        "priority": 1,
        "displayName": "Delivery Fee",
        "description": "Distance-based delivery charge: ₹10 base + ₹10 per km for orders <₹199",
        "showInBreakdown": True,
        "conditions": [
            {"field": "deliveryDistance", "operator": "greater_than", "value": 0, "amount": 0},
        ],
    },
]

DEFAULT_GLOBAL_SETTINGS = GlobalSettings(currency="INR", rounding_method="round", display_precision=2)


def default_fee_rules() -> List[FeeRule]:
    return [FeeRule.model_validate(rule) for rule in DEFAULT_FEE_RULES]


def _build_configuration(rules: Iterable[FeeRule]) -> FeeConfiguration:
    return FeeConfiguration(
        version=CONFIG_VERSION,
        last_updated=datetime.now(timezone.utc),
        fees=list(rules),
        global_settings=DEFAULT_GLOBAL_SETTINGS,
    )


def default_configuration() -> FeeConfiguration:
    """A fresh copy of the default catalog configuration"""
    return _build_configuration(default_fee_rules())


def _subset(include: Optional[List[str]] = None, exclude: Optional[List[str]] = None,
            enable: Optional[List[str]] = None) -> List[FeeRule]:
    rules = default_fee_rules()
    if include is not None:
        rules = [rule for rule in rules if rule.id in include]
    if exclude is not None:
        rules = [rule for rule in rules if rule.id not in exclude]
    if enable is not None:
        rules = [rule.model_copy(update={"enabled": rule.id in enable}) for rule in rules]
    return rules


FEE_PRESETS: Dict[str, Dict[str, Any]] = {
    "BASIC": {
        "name": "Basic",
        "description": "Minimal fees - just delivery and tax",
        "rules": lambda: _subset(include=["delivery_fee_standard", "tax_gst", "free_delivery_threshold"]),
    },
    "PREMIUM": {
        "name": "Premium",
        "description": "Includes service charges and platform fees",
        "rules": lambda: _subset(
            exclude=["packaging_fee"],
            enable=["delivery_fee_standard", "tax_gst", "free_delivery_threshold", "service_charge"],
        ),
    },
    "FULL": {
        "name": "Full",
        "description": "All available fees enabled, delivery charged by distance",
        # Level-based delivery stays off: the distance rule already charges delivery
        "rules": lambda: [
            rule.model_copy(update={"enabled": rule.id != "delivery_fee_standard"})
            for rule in default_fee_rules()
        ],
    },
    "RESTAURANT_OWNED": {
        "name": "Restaurant Owned",
        "description": "For restaurants that handle their own delivery",
        "rules": lambda: _subset(
            exclude=["delivery_fee_standard", "free_delivery_threshold"],
            enable=["tax_gst", "service_charge"],
        ),
    },
}


def get_preset_configuration(preset_name: str) -> FeeConfiguration:
    """Build the configuration for a named preset; raises KeyError for unknown names"""
    preset = FEE_PRESETS[preset_name.upper()]
    return _build_configuration(preset["rules"]())


def create_custom_configuration(enabled_fee_ids: List[str],
                                overrides: Optional[List[Dict[str, Any]]] = None) -> FeeConfiguration:
    """
    Start from the default catalog, enable exactly the listed fees and
    merge per-rule overrides (matched by id, camelCase or snake_case keys).
    """
    overrides_by_id = {override["id"]: override for override in overrides or [] if "id" in override}

    rules = []
    for rule in default_fee_rules():
        data = rule.model_dump(by_alias=True)
        override = overrides_by_id.get(rule.id, {})
        data.update({to_camel(key) if "_" in key else key: value for key, value in override.items()})
        data["enabled"] = rule.id in enabled_fee_ids
        rules.append(FeeRule.model_validate(data))

    return _build_configuration(rules)


def load_configuration(config_path: str = None) -> FeeConfiguration:
    """Load a fee configuration document from JSON, falling back to the default catalog"""
    if config_path is None:
        config_path = os.getenv("FEE_CONFIG_PATH")

    if not config_path:
        return default_configuration()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            configuration = FeeConfiguration.model_validate_json(f.read())
    except FileNotFoundError:
        logger.warning("Fee configuration file not found, using default catalog",
                       config_path=config_path)
        return default_configuration()

    logger.configuration_event("configuration_loaded",
                               version=configuration.version,
                               config_path=config_path,
                               fee_count=len(configuration.fees))
    return configuration
