"""
Session Store - durable record of payment sessions.

Every write commits before returning. ``meta`` updates are merged into
the stored bag; every other field is replaced.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shipsync.errors import DuplicateKey, SessionNotFound
from shipsync.fsm.states import PaymentStatus
from shipsync.models.payment_session import PaymentSession

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50

UPDATABLE_FIELDS = frozenset({
    "order_id",
    "amount",
    "currency",
    "description",
    "status",
    "sender_name",
    "sender_phone",
    "sender_address",
    "receiver_name",
    "receiver_phone",
    "receiver_address",
    "location",
    "weight",
    "is_cod",
    "same_day_delivery",
    "is_sensitive",
    "special_notes",
    "pronto_customer_code",
    "pronto_tracking_number",
    "pronto_status",
    "pronto_area_code",
    "pronto_cost",
    "pronto_payload",
    "pronto_response",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class SessionStore:
    """Keyed access to PaymentSession records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: Dict[str, Any]) -> PaymentSession:
        """Insert a new PENDING session. Raises DuplicateKey if the id exists."""
        session_id = data["session_id"]
        if await self.get(session_id) is not None:
            raise DuplicateKey(f"Payment session {session_id} already exists")

        now = _utcnow()
        fields = {key: _plain(value) for key, value in data.items()}
        fields.setdefault("status", PaymentStatus.PENDING.value)
        record = PaymentSession(**fields, created_at=now, updated_at=now)
        self.db.add(record)

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateKey(f"Payment session {session_id} already exists") from e

        logger.info(f"Payment session stored: {session_id} (order {record.order_id})")
        return record

    async def get(self, session_id: str) -> Optional[PaymentSession]:
        return await self.db.get(PaymentSession, session_id)

    async def get_by_order_id(self, order_id: str) -> List[PaymentSession]:
        """Sessions for an order id, newest first (order ids are not unique in storage)."""
        result = await self.db.execute(
            select(PaymentSession)
            .where(PaymentSession.order_id == order_id)
            .order_by(PaymentSession.created_at.desc())
        )
        return list(result.scalars().all())

    async def update(self, session_id: str, changes: Dict[str, Any]) -> PaymentSession:
        """
        Apply a partial update.

        Only keys present in ``changes`` are written. ``meta`` is merged
        into the existing bag, never replaced wholesale.
        """
        record = await self.get(session_id)
        if record is None:
            raise SessionNotFound(session_id)

        for key, value in changes.items():
            if key == "meta":
                # Assign a new dict so the JSON column is flagged dirty
                record.meta = {**(record.meta or {}), **(value or {})}
            elif key in UPDATABLE_FIELDS:
                setattr(record, key, _plain(value))
            else:
                raise ValueError(f"Unknown or immutable payment session field: {key}")

        record.updated_at = _utcnow()
        await self.db.commit()

        logger.debug(f"Payment session {session_id} updated: {sorted(changes)}")
        return record

    async def list_sessions(self, limit: int = DEFAULT_LIST_LIMIT) -> List[PaymentSession]:
        """Most recently created first."""
        result = await self.db.execute(
            select(PaymentSession)
            .order_by(PaymentSession.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def reset_all(self) -> int:
        """Delete every session. Test isolation only."""
        result = await self.db.execute(delete(PaymentSession))
        await self.db.commit()
        self.db.expunge_all()
        logger.warning(f"Payment sessions reset: {result.rowcount} deleted")
        return result.rowcount
