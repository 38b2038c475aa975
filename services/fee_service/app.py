# CREATE FILE: services/fee_service/app.py

import json
import os
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from utils.logging import get_logger

from .config import FEE_PRESETS, load_configuration
from .manager import FeeManager
from .models import (
    CamelModel,
    ConfigurationValidation,
    Coordinates,
    DeliveryLevel,
    FeeBreakdown,
    FeeCalculationContext,
    OrderCalculationResult,
    StoredOrderTotals,
    UserType,
)
from .orders import (
    CartLine,
    DeliveryNotAvailableError,
    apply_order_adjustments,
    build_delivery_context,
    cart_subtotal,
    create_order_context,
    order_totals_for_storage,
)

logger = get_logger("fee_service")


class PriceRequest(BaseModel):
    items: List[CartLine] = Field(..., min_length=1)
    restaurant_id: Optional[str] = None
    delivery_level: DeliveryLevel = DeliveryLevel.STANDARD
    payment_method: Optional[str] = None
    user_type: Optional[UserType] = None
    delivery_distance: Optional[float] = Field(None, ge=0, description="Delivery distance in kilometers")
    user_location: Optional[Coordinates] = None
    restaurant_location: Optional[Coordinates] = None
    tip: int = Field(0, ge=0, description="Tip in minor units")
    coupon_discount: int = Field(0, ge=0, description="Pre-computed coupon discount in minor units")
    coupon_code: Optional[str] = None
    custom_data: Dict[str, Any] = Field(default_factory=dict)


class PriceResponse(CamelModel):
    calculation: OrderCalculationResult
    stored_totals: StoredOrderTotals


def build_context(request: PriceRequest) -> FeeCalculationContext:
    options = {
        "restaurant_id": request.restaurant_id,
        "delivery_level": request.delivery_level,
        "payment_method": request.payment_method,
        "user_type": request.user_type,
        "custom_data": request.custom_data,
    }

    if request.user_location is not None and request.restaurant_location is not None:
        return build_delivery_context(
            request.items, request.user_location, request.restaurant_location, **options
        )

    return create_order_context(
        cart_subtotal(request.items),
        delivery_distance=request.delivery_distance,
        **options
    )


def create_manager_from_env() -> FeeManager:
    manager = FeeManager(load_configuration())
    preset = os.getenv("FEE_PRESET")
    if preset:
        manager.load_preset(preset)
    return manager


def get_fee_manager(request: Request) -> FeeManager:
    return request.app.state.fee_manager


def create_app(manager: Optional[FeeManager] = None) -> FastAPI:
    app = FastAPI(title="Fee Service", version="1.0.0")
    app.state.fee_manager = manager or create_manager_from_env()

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"ok": True}

    @app.post("/price", response_model=PriceResponse)
    async def calculate_price(request: PriceRequest, fee_manager: FeeManager = Depends(get_fee_manager)):
        """
        Price a cart with the active fee configuration.

        Returns every applied fee line (delivery, tax, service, platform,
        packaging) plus tip and coupon lines, and the totals columns to
        persist on the order.
        """
        try:
            context = build_context(request)
        except DeliveryNotAvailableError as e:
            raise HTTPException(status_code=400, detail=str(e))

        result = apply_order_adjustments(
            fee_manager.calculate_order_total(context),
            tip=request.tip,
            coupon_discount=request.coupon_discount,
            coupon_code=request.coupon_code,
        )
        stored_totals = order_totals_for_storage(result)

        settings = fee_manager.get_configuration().global_settings
        logger.pricing_event("order_priced",
                             subtotal=result.subtotal,
                             total=result.total,
                             currency=settings.currency,
                             restaurant_id=request.restaurant_id,
                             fee_count=len(result.fees))

        return PriceResponse(calculation=result, stored_totals=stored_totals)

    @app.post("/breakdown", response_model=FeeBreakdown)
    async def fee_breakdown(request: PriceRequest, fee_manager: FeeManager = Depends(get_fee_manager)):
        try:
            context = build_context(request)
        except DeliveryNotAvailableError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return fee_manager.get_fee_breakdown(context)

    @app.get("/config")
    async def get_fee_config(fee_manager: FeeManager = Depends(get_fee_manager)):
        """Current configuration document"""
        return fee_manager.get_configuration().model_dump(mode="json", by_alias=True)

    @app.put("/config")
    async def import_fee_config(document: Dict[str, Any] = Body(...),
                                fee_manager: FeeManager = Depends(get_fee_manager)):
        if not fee_manager.import_configuration(json.dumps(document)):
            raise HTTPException(status_code=400, detail="Invalid fee configuration document")
        return {"ok": True, "version": fee_manager.get_configuration().version}

    @app.post("/config/presets/{preset_name}")
    async def load_fee_preset(preset_name: str, fee_manager: FeeManager = Depends(get_fee_manager)):
        if preset_name.upper() not in FEE_PRESETS:
            raise HTTPException(status_code=404, detail=f"Unknown preset: {preset_name}")
        fee_manager.load_preset(preset_name)
        return {"ok": True, "preset": preset_name.upper()}

    @app.get("/config/validate", response_model=ConfigurationValidation)
    async def validate_fee_config(fee_manager: FeeManager = Depends(get_fee_manager)):
        return fee_manager.validate_configuration()

    return app


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8001"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
