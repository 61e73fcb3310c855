"""
IPG Webhook Handler.
Verifies the shared secret, records the payment outcome and creates the
shipment for successful payments.
"""

import hmac
import json
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Request, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shipsync.api.deps import get_mpgs_service, get_pronto_service, get_webhook_secret
from shipsync.database import get_db
from shipsync.errors import InvalidPayload, SessionNotFound, ShipmentFailed, Unauthorized
from shipsync.fsm.states import PaymentStatus
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.payment_session_service import PaymentSessionService
from shipsync.services.pronto_service import ProntoService
from shipsync.services.session_store import SessionStore
from shipsync.services.shipment_service import ShipmentService

router = APIRouter()
logger = logging.getLogger(__name__)

SECRET_HEADER = "x-notification-secret"

# Tried in order; first non-empty string wins
SESSION_ID_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("sessionId",),
    ("session", "id"),
    ("data", "session", "id"),
)

SUCCESS_VALUES = frozenset({"SUCCESS", "CAPTURED", "APPROVED"})


def verify_webhook_secret(provided: Optional[str], expected: str) -> bool:
    """Constant-time comparison. An unconfigured secret rejects everything."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _lookup(payload: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    current: Any = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def extract_session_id(payload: Dict[str, Any]) -> Optional[str]:
    """Session id from any of the accepted payload shapes, or None."""
    for path in SESSION_ID_PATHS:
        value = _lookup(payload, path)
        if isinstance(value, str) and value:
            return value
    return None


def is_payment_successful(payload: Dict[str, Any]) -> bool:
    """True if any status-like field carries a success value (case-insensitive)."""
    candidates = [
        payload.get("result"),
        payload.get("status"),
        payload.get("paymentStatus"),
        _lookup(payload, ("transaction", "status")),
    ]
    return any(
        isinstance(candidate, str) and candidate.upper() in SUCCESS_VALUES
        for candidate in candidates
    )


async def parse_payload(request: Request) -> Dict[str, Any]:
    """Lenient JSON parsing; anything unusable becomes an empty object."""
    body = await request.body()
    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        logger.warning("IPG webhook body is not valid JSON; treating as empty")
        return {}
    return payload if isinstance(payload, dict) else {}


@router.api_route("/webhook", methods=["POST", "PATCH"])
async def ipg_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    pronto: ProntoService = Depends(get_pronto_service),
    mpgs: MpgsService = Depends(get_mpgs_service),
    expected_secret: str = Depends(get_webhook_secret),
):
    """
    Handle a payment notification.

    Steps:
    1. Verify ``x-notification-secret`` (no session access on mismatch)
    2. Extract the session id from the payload
    3. Record COMPLETED / FAILED on the session
    4. On success, create the shipment; shipment failures are persisted
       on the session before the error is returned
    """
    logger.info(f"IPG webhook received ({request.method})")

    if not verify_webhook_secret(request.headers.get(SECRET_HEADER), expected_secret):
        logger.warning("IPG webhook rejected: invalid webhook secret")
        raise Unauthorized("Invalid webhook secret")

    logger.info("IPG webhook secret validated")

    payload = await parse_payload(request)
    session_id = extract_session_id(payload)
    if not session_id:
        raise InvalidPayload("Missing MPGS session identifier")

    store = SessionStore(db)
    session = await store.get(session_id)
    if session is None:
        raise SessionNotFound(session_id)

    order_id = session.order_id
    success = is_payment_successful(payload)
    context = {"session_id": session_id, "order_id": order_id}
    logger.info(f"IPG webhook for session {session_id}: payment {'succeeded' if success else 'failed'}", extra=context)

    lifecycle = PaymentSessionService(db, pronto=pronto, mpgs=mpgs)
    await lifecycle.transition(session_id, success, payload)

    if not success:
        return {
            "success": True,
            "data": {
                "sessionId": session_id,
                "orderId": order_id,
                "paymentStatus": PaymentStatus.FAILED.value,
            },
        }

    # Status is already COMPLETED here; a shipment failure leaves it that way
    shipments = ShipmentService(db, pronto)
    try:
        shipment = await shipments.create_shipment_for_session(session_id)
    except Exception as e:
        logger.error(f"Shipment creation failed for session {session_id}: {e}", exc_info=True, extra=context)
        await shipments.record_failure(session_id, e)
        raise ShipmentFailed(
            str(e) or "Shipment creation failed",
            details={
                "sessionId": session_id,
                "cause": getattr(e, "code", type(e).__name__),
            },
        ) from e

    return {
        "success": True,
        "data": {
            "sessionId": session_id,
            "orderId": order_id,
            "paymentStatus": PaymentStatus.COMPLETED.value,
            "shipment": shipment.to_dict(),
        },
    }
