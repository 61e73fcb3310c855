"""
Payment Session Service - session creation and status transitions.
"""

import uuid
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from shipsync.config import settings
from shipsync.errors import (
    CarrierError,
    ConfigurationError,
    QuoteUnavailable,
    ValidationError,
    SessionNotFound,
)
from shipsync.fsm.machine import ensure_transition
from shipsync.fsm.states import PaymentStatus, ZoneCode
from shipsync.models.payment_session import PaymentSession
from shipsync.schemas import parse_create_session
from shipsync.services.area_codes import resolve_area_code
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.pronto_service import ProntoService, CostQuote
from shipsync.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def round2(value: Decimal) -> Decimal:
    """Round a money amount to 2dp. Amounts too large to hold 2dp are rejected."""
    try:
        return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValidationError(
            "Validation failed.",
            details=[{"field": "amount", "message": "Amount is out of range"}],
        ) from e


class PaymentSessionService:
    """Owns the PENDING -> COMPLETED | FAILED lifecycle."""

    def __init__(self, db: AsyncSession, pronto: ProntoService, mpgs: MpgsService):
        self.db = db
        self.pronto = pronto
        self.mpgs = mpgs
        self.store = SessionStore(db)

    async def create_session(self, request: Any) -> PaymentSession:
        """
        Create a checkout session priced with the carrier's delivery charge.

        1. Validate input
        2. Quote delivery (aborts everything on failure)
        3. total = round2(item amount + delivery charge)
        4. Create the gateway session for the total
        5. Persist a PENDING session keyed by the gateway session id
        """
        request = parse_create_session(request)
        self.mpgs.ensure_configured()

        currency = request.currency or settings.mpgs_currency
        if not currency:
            raise ConfigurationError(
                "Configuration error: Missing currency "
                "(provide `currency` in the request or set MPGS_CURRENCY)"
            )

        item_amount = round2(request.amount)
        order_id = request.order_id or str(uuid.uuid4())
        shipment = request.shipment
        customer_code = shipment.customer_code or self.pronto.customer_code
        area_code = resolve_area_code(shipment.location)

        quote = await self._quote_delivery(customer_code, shipment.weight, area_code)

        delivery_charge = round2(quote.cost)
        total_amount = round2(item_amount + delivery_charge)
        pricing = {
            "itemAmount": float(item_amount),
            "deliveryCharge": float(delivery_charge),
            "totalAmount": float(total_amount),
            "currency": currency,
        }

        gateway_response = await self.mpgs.create_checkout_session(
            order_id=order_id,
            amount=total_amount,
            currency=currency,
            description=request.description,
        )
        session_id = gateway_response["session"]["id"]

        record = await self.store.create({
            "session_id": session_id,
            "order_id": order_id,
            "amount": total_amount,
            "currency": currency,
            "description": request.description,
            "sender_name": request.sender.name,
            "sender_phone": request.sender.phone,
            "sender_address": request.sender.address,
            "receiver_name": request.receiver.name,
            "receiver_phone": request.receiver.phone,
            "receiver_address": request.receiver.address,
            "location": shipment.location,
            "weight": shipment.weight,
            "is_cod": shipment.is_cod,
            "same_day_delivery": shipment.same_day_delivery,
            "is_sensitive": shipment.is_sensitive,
            "special_notes": shipment.special_notes,
            "pronto_customer_code": customer_code,
            "pronto_area_code": area_code.value,
            "pronto_cost": delivery_charge,
            "meta": {
                "pricing": pricing,
                "shippingQuote": {
                    "areaCode": area_code.value,
                    "customerCode": customer_code,
                    "response": quote.raw,
                },
                "gatewayResponse": gateway_response,
            },
        })

        logger.info(
            f"Payment session {session_id} created for order {order_id}: "
            f"{total_amount} {currency} (delivery {delivery_charge})"
        )
        return record

    async def transition(
        self,
        session_id: str,
        success: bool,
        raw_payload: Dict[str, Any],
    ) -> PaymentSession:
        """
        Move a session to COMPLETED or FAILED and record the webhook.

        Replaying the same outcome is allowed and lands on the same state;
        every replay is appended to ``webhookHistory``.
        """
        record = await self.store.get(session_id)
        if record is None:
            raise SessionNotFound(session_id)

        target = ensure_transition(
            record.status,
            PaymentStatus.COMPLETED if success else PaymentStatus.FAILED,
        )

        received_at = datetime.now(timezone.utc).isoformat()
        history = list((record.meta or {}).get("webhookHistory") or [])
        history.append({
            "receivedAt": received_at,
            "success": success,
            "payload": raw_payload,
        })

        updated = await self.store.update(session_id, {
            "status": target,
            "meta": {
                "lastWebhookAt": received_at,
                "lastWebhookPayload": raw_payload,
                "webhookHistory": history,
            },
        })

        logger.info(f"Payment session {session_id} -> {target.value}")
        return updated

    async def _quote_delivery(
        self,
        customer_code: str,
        weight: float,
        area_code: ZoneCode,
    ) -> CostQuote:
        try:
            quote = await self.pronto.quote_cost(customer_code, weight, area_code)
        except CarrierError as e:
            logger.error(f"Failed to retrieve Pronto delivery charges: {e}")
            raise QuoteUnavailable(
                "Unable to calculate delivery charges for this location. "
                "Please verify the destination and try again.",
                details=str(e),
            ) from e

        if not quote.cost.is_finite():
            raise QuoteUnavailable("Pronto did not return a valid delivery charge for this request.")

        return quote
