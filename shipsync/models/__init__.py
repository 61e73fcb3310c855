"""Models package for database models."""

from shipsync.models.payment_session import PaymentSession

__all__ = [
    "PaymentSession",
]
