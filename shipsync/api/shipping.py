"""
Shipping API.
Cost estimates, shipment creation and tracking against Pronto Lanka.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from shipsync.api.deps import get_pronto_service
from shipsync.database import get_db
from shipsync.errors import CarrierError, ValidationError
from shipsync.schemas import CamelModel, ShipmentRequest, validation_details
from shipsync.services.area_codes import resolve_area_code
from shipsync.services.pronto_service import ProntoService
from shipsync.services.shipment_service import ShipmentService

router = APIRouter(prefix="/api/shipping", tags=["shipping"])
logger = logging.getLogger(__name__)

CARRIER_CURRENCY = "LKR"


class EstimateRequest(CamelModel):
    """Request body for a delivery cost estimate."""
    weight: float = Field(ge=0.1, le=100)
    location: str = Field(min_length=1)
    customer_code: Optional[str] = None


class TrackRequest(CamelModel):
    """Request body for tracking lookup."""
    tracking_number: str = Field(min_length=1)
    customer_code: Optional[str] = None


class SessionShipmentRequest(CamelModel):
    """Create the shipment for a stored payment session."""
    session_id: str = Field(min_length=1)


def _validate(model, data: Dict[str, Any]):
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Validation failed.", details=validation_details(e)) from e


@router.post("/estimate")
async def estimate_shipping(
    request: EstimateRequest,
    pronto: ProntoService = Depends(get_pronto_service),
):
    """Delivery cost for a weight and destination."""
    area_code = resolve_area_code(request.location)
    quote = await pronto.quote_cost(request.customer_code, request.weight, area_code)

    return {
        "success": True,
        "data": {
            "cost": float(quote.cost),
            "weight": request.weight,
            "location": request.location,
            "areaCode": area_code.value,
            "currency": CARRIER_CURRENCY,
        },
    }


@router.post("/create-shipment")
async def create_shipment(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    pronto: ProntoService = Depends(get_pronto_service),
):
    """
    Create a carrier shipment.

    Body is either ``{"sessionId": ...}`` to ship a stored session, or a
    full shipment request (nothing is persisted for direct requests).
    """
    service = ShipmentService(db, pronto)

    if "sessionId" in payload or "session_id" in payload:
        request = _validate(SessionShipmentRequest, payload)
        result = await service.create_shipment_for_session(request.session_id)
    else:
        request = _validate(ShipmentRequest, payload)
        result = await service.create_shipment(request)

    data = {
        "trackingNumber": result.tracking_number,
        "orderId": result.order_id,
        "status": result.status,
        "cost": float(result.cost),
        "areaCode": result.area_code.value,
        "currency": CARRIER_CURRENCY,
    }
    if result.session_id is not None:
        data["sessionId"] = result.session_id

    return {"success": True, "data": data}


@router.post("/track")
async def track_shipment(
    request: TrackRequest,
    pronto: ProntoService = Depends(get_pronto_service),
):
    """Tracking history; the current status is the last entry."""
    events = await pronto.get_tracking_history(request.customer_code, request.tracking_number)
    history = [event.to_dict() for event in events]
    current = history[-1] if history else None

    return {
        "success": True,
        "data": {
            "trackingNumber": request.tracking_number,
            "status": current["status"] if current else "Unknown",
            "statusDescription": current["statusDescription"] if current else "Status unknown",
            "trackingHistory": history,
        },
    }


@router.get("/config")
async def shipping_config(
    pronto: ProntoService = Depends(get_pronto_service),
):
    """Carrier endpoint, account and reachability."""
    try:
        rate_structure = await pronto.get_rate_structure()
        connection = "connected"
    except CarrierError as e:
        logger.warning(f"Pronto rate structure unavailable: {e}")
        rate_structure = None
        connection = "unreachable"

    return {
        "success": True,
        "data": {
            "baseUrl": pronto.base_url,
            "customerCode": pronto.customer_code,
            "connectionStatus": connection,
            "rateStructure": rate_structure,
        },
    }
