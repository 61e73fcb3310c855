"""Services package."""

from shipsync.services.area_codes import resolve_area_code
from shipsync.services.pronto_service import ProntoService
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.session_store import SessionStore
from shipsync.services.payment_session_service import PaymentSessionService
from shipsync.services.shipment_service import ShipmentService

__all__ = [
    "resolve_area_code",
    "ProntoService",
    "MpgsService",
    "SessionStore",
    "PaymentSessionService",
    "ShipmentService",
]
