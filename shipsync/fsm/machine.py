"""
Payment session state machine.
Status only moves forward: PENDING -> COMPLETED | FAILED.
"""

import logging
from typing import Dict, FrozenSet

from shipsync.errors import InvalidTransition
from shipsync.fsm.states import PaymentStatus

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    # Replays land on the same terminal state
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.FAILED}),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: PaymentStatus) -> PaymentStatus:
    """
    Validate a status change and return the target status.
    
    Raises InvalidTransition for anything that is not a forward move
    or an idempotent replay.
    """
    current_status = PaymentStatus(current)
    if not can_transition(current_status, target):
        logger.warning(f"Rejected status change {current_status.value} -> {target.value}")
        raise InvalidTransition(
            f"Cannot move payment session from {current_status.value} to {target.value}",
            details={"from": current_status.value, "to": target.value},
        )
    return target
