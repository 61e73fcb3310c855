"""
Shipment Service - creates Pronto shipments for paid sessions.

Order of carrier calls: allocate tracking number, quote cost, insert.
A tracking number allocated before a rejected insert is not returned
to the carrier's pool.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from shipsync.errors import CarrierRejection, SessionNotFound, ShipmentRejected
from shipsync.fsm.machine import ensure_transition
from shipsync.fsm.states import PaymentStatus, ProntoStatus, ZoneCode
from shipsync.models.payment_session import PaymentSession
from shipsync.schemas import ShipmentParty, ShipmentRequest
from shipsync.services.area_codes import resolve_area_code
from shipsync.services.pronto_service import ProntoService
from shipsync.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class ShipmentResult:
    order_id: str
    tracking_number: str
    cost: Decimal
    status: str
    area_code: ZoneCode
    response: Dict[str, Any]
    payload: Dict[str, Any]
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "orderId": self.order_id,
            "trackingNumber": self.tracking_number,
            "cost": float(self.cost),
            "status": self.status,
            "areaCode": self.area_code.value,
            "response": self.response,
            "payload": self.payload,
        }
        if self.session_id is not None:
            data["sessionId"] = self.session_id
        return data


def shipment_request_from_session(record: PaymentSession) -> ShipmentRequest:
    """Rebuild the carrier request from stored session fields (no re-validation)."""
    return ShipmentRequest.model_construct(
        order_id=record.order_id,
        sender_name=record.sender_name,
        sender_phone=record.sender_phone,
        sender_address=record.sender_address,
        receiver_name=record.receiver_name,
        receiver_address=record.receiver_address,
        receiver_phone=record.receiver_phone,
        item_value=Decimal(record.amount),
        weight=record.weight,
        location=record.location,
        is_cod=record.is_cod,
        same_day_delivery=record.same_day_delivery,
        is_sensitive=record.is_sensitive,
        special_notes=record.special_notes,
        customer_code=record.pronto_customer_code,
    )


class ShipmentService:
    """Orchestrates tracking allocation, costing and shipment insertion."""

    def __init__(self, db: AsyncSession, pronto: ProntoService):
        self.db = db
        self.pronto = pronto
        self.store = SessionStore(db)

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        """Create a carrier shipment. Nothing is persisted."""
        area_code = resolve_area_code(request.location)
        customer_code = request.customer_code or self.pronto.customer_code

        tracking_number = await self.pronto.allocate_tracking_number(customer_code, request.is_cod)
        context = {"order_id": request.order_id, "tracking_number": tracking_number}
        quote = await self.pronto.quote_cost(customer_code, request.weight, area_code)

        sender = ShipmentParty.model_construct(
            name=request.sender_name,
            phone=request.sender_phone,
            address=request.sender_address,
        )
        receiver = ShipmentParty.model_construct(
            name=request.receiver_name,
            phone=request.receiver_phone,
            address=request.receiver_address,
        )

        try:
            result = await self.pronto.insert_shipment(
                tracking_number=tracking_number,
                sender=sender,
                receiver=receiver,
                item_value=request.item_value,
                zone=area_code,
                same_day=request.same_day_delivery,
                sensitive=request.is_sensitive,
                notes=request.special_notes,
            )
        except CarrierRejection as e:
            status_ref = (e.details or {}).get("status_ref") if isinstance(e.details, dict) else None
            logger.error(f"Pronto rejected shipment {tracking_number} for order {request.order_id}: {e}", extra=context)
            raise ShipmentRejected(
                f"Shipment creation failed: {status_ref or 'Unknown error'}",
                details=e.details,
            ) from e

        if not result.accepted:
            logger.error(
                f"Pronto rejected shipment {tracking_number} for order {request.order_id}: "
                f"status={result.status} {result.status_ref}",
                extra=context,
            )
            raise ShipmentRejected(
                f"Shipment creation failed: {result.status_ref}",
                details=result.raw,
            )

        logger.info(f"Shipment {tracking_number} created for order {request.order_id} (cost {quote.cost})", extra=context)

        return ShipmentResult(
            order_id=request.order_id,
            tracking_number=tracking_number,
            cost=quote.cost,
            status=result.status,
            area_code=area_code,
            response=result.raw,
            payload=result.payload,
        )

    async def create_shipment_for_session(self, session_id: str) -> ShipmentResult:
        """
        Create the shipment for a stored session and persist the outcome.

        On success the carrier fields are written and the session is
        COMPLETED. Failures propagate; callers record them.
        """
        record = await self.store.get(session_id)
        if record is None:
            raise SessionNotFound(session_id)

        ensure_transition(record.status, PaymentStatus.COMPLETED)

        shipment = await self.create_shipment(shipment_request_from_session(record))
        shipment.session_id = session_id

        await self.store.update(session_id, {
            "pronto_tracking_number": shipment.tracking_number,
            "pronto_status": ProntoStatus.SHIPMENT_CREATED,
            "pronto_cost": shipment.cost,
            "pronto_area_code": shipment.area_code.value,
            "pronto_payload": shipment.payload,
            "pronto_response": shipment.response,
            "status": PaymentStatus.COMPLETED,
        })

        return shipment

    async def record_failure(self, session_id: str, error: BaseException) -> PaymentSession:
        """Mark the shipment attempt FAILED and note the error in metadata."""
        return await self.store.update(session_id, {
            "pronto_status": ProntoStatus.FAILED,
            "meta": {
                "lastShipmentError": str(error),
                "lastShipmentErrorAt": datetime.now(timezone.utc).isoformat(),
            },
        })
