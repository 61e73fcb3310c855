"""Payment session model - the record linking checkout, webhook and shipment."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import String, DateTime, Numeric, Float, Boolean, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from shipsync.database import Base
from shipsync.fsm.states import PaymentStatus


def _decimal_to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class PaymentSession(Base):
    """
    Payment session keyed by the gateway-issued session id.
    Timestamps are written by the session store, not by callers.
    """
    
    __tablename__ = "payment_sessions"
    
    # Gateway session id (immutable)
    session_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    
    order_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    
    # Total charged, delivery charge included
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )
    
    description: Mapped[str] = mapped_column(
        String(127),
        nullable=False,
    )
    
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )
    
    # Parties
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sender_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    sender_address: Mapped[str] = mapped_column(Text, nullable=False)
    receiver_name: Mapped[str] = mapped_column(String(255), nullable=False)
    receiver_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    receiver_address: Mapped[str] = mapped_column(Text, nullable=False)
    
    # Shipment intent
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    is_cod: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    same_day_delivery: Mapped[bool] = mapped_column(
        "same_day",
        Boolean,
        default=False,
        nullable=False,
    )
    is_sensitive: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    special_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pronto_customer_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    
    # Open bag: gateway response, pricing, webhook history, shipment errors.
    # "metadata" is reserved on declarative classes.
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )
    
    # Carrier outcome
    pronto_tracking_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pronto_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    pronto_area_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    pronto_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    pronto_payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    pronto_response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    
    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    
    def to_dict(self) -> Dict[str, Any]:
        """API representation (camelCase keys)."""
        return {
            "sessionId": self.session_id,
            "orderId": self.order_id,
            "amount": _decimal_to_float(self.amount),
            "currency": self.currency,
            "description": self.description,
            "status": self.status,
            "senderName": self.sender_name,
            "senderPhone": self.sender_phone,
            "senderAddress": self.sender_address,
            "receiverName": self.receiver_name,
            "receiverPhone": self.receiver_phone,
            "receiverAddress": self.receiver_address,
            "location": self.location,
            "weight": self.weight,
            "isCod": self.is_cod,
            "sameDayDelivery": self.same_day_delivery,
            "isSensitive": self.is_sensitive,
            "specialNotes": self.special_notes,
            "prontoCustomerCode": self.pronto_customer_code,
            "metadata": self.meta,
            "prontoTrackingNumber": self.pronto_tracking_number,
            "prontoStatus": self.pronto_status,
            "prontoAreaCode": self.pronto_area_code,
            "prontoCost": _decimal_to_float(self.pronto_cost),
            "prontoPayload": self.pronto_payload,
            "prontoResponse": self.pronto_response,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
    
    def __repr__(self) -> str:
        return f"<PaymentSession {self.session_id} {self.status}>"
