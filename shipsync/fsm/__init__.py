"""FSM package for payment session state management."""

from shipsync.fsm.states import PaymentStatus, ProntoStatus, ZoneCode, TrackingStatus
from shipsync.fsm.machine import can_transition, ensure_transition

__all__ = [
    "PaymentStatus",
    "ProntoStatus",
    "ZoneCode",
    "TrackingStatus",
    "can_transition",
    "ensure_transition",
]
