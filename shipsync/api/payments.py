"""
Payments API.
Checkout session creation and session inspection.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shipsync.api.deps import get_mpgs_service, get_pronto_service
from shipsync.database import get_db
from shipsync.errors import SessionNotFound
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.payment_session_service import PaymentSessionService
from shipsync.services.pronto_service import ProntoService
from shipsync.services.session_store import SessionStore

router = APIRouter(prefix="/api/payments", tags=["payments"])
logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100


@router.post("/create-session", status_code=201)
async def create_session(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    pronto: ProntoService = Depends(get_pronto_service),
    mpgs: MpgsService = Depends(get_mpgs_service),
):
    """
    Create a hosted-checkout session.

    The charged amount is the item amount plus the carrier's delivery
    charge for the destination.
    """
    service = PaymentSessionService(db, pronto=pronto, mpgs=mpgs)
    record = await service.create_session(payload)

    meta = record.meta or {}
    pricing = meta.get("pricing", {})
    quote = meta.get("shippingQuote", {})

    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "data": {
                "orderId": record.order_id,
                "sessionId": record.session_id,
                "amount": float(record.amount),
                "currency": record.currency,
                "deliveryCharge": pricing.get("deliveryCharge"),
                "pricing": pricing,
                "gatewayResponse": meta.get("gatewayResponse"),
                "shipping": {
                    "areaCode": quote.get("areaCode"),
                    "customerCode": quote.get("customerCode"),
                    "cost": pricing.get("deliveryCharge"),
                },
            },
        },
    )


@router.get("/sessions")
async def list_sessions(
    limit: int = Query(50, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Most recent sessions first."""
    store = SessionStore(db)
    sessions = await store.list_sessions(limit=min(limit, MAX_LIST_LIMIT))
    return {
        "success": True,
        "data": [session.to_dict() for session in sessions],
    }


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
):
    store = SessionStore(db)
    record = await store.get(session_id)
    if record is None:
        raise SessionNotFound(session_id)
    return {"success": True, "data": record.to_dict()}
