"""
State and code definitions for payment sessions and carrier shipments.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """
    Payment session status.
    Only PENDING, COMPLETED and FAILED are ever assigned; the rest are
    accepted values kept for forward compatibility.
    """
    
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    
    @property
    def is_terminal(self) -> bool:
        return self in (
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
            PaymentStatus.CANCELLED,
            PaymentStatus.REFUNDED,
        )


class ProntoStatus(str, Enum):
    """Outcome of the most recent shipment attempt for a session."""
    
    SHIPMENT_CREATED = "SHIPMENT_CREATED"
    TRACKING_GENERATED = "TRACKING_GENERATED"
    FAILED = "FAILED"


class ZoneCode(str, Enum):
    """
    Pronto Lanka delivery zones.
    Values are the carrier's ``pronto_ac`` codes.
    """
    
    CITY = "1"              # Colombo core areas
    GREATER_CITY = "2"      # Suburbs (Dehiwala, Negombo, ...)
    OUTSTATION = "3"        # Regional towns
    HIGH_SECURITY = "4"     # Restricted zones
    SPECIAL_AREA = "5"      # Remote or custom zones
    
    @property
    def label(self) -> str:
        labels = {
            ZoneCode.CITY: "City",
            ZoneCode.GREATER_CITY: "Greater City",
            ZoneCode.OUTSTATION: "Outstation",
            ZoneCode.HIGH_SECURITY: "High Security",
            ZoneCode.SPECIAL_AREA: "Special Area",
        }
        return labels[self]
    
    @property
    def location_code(self) -> str:
        """Four-digit form sent as ``pronto_lc``."""
        return self.value.zfill(4)


class TrackingStatus(str, Enum):
    """Status codes reported in carrier tracking history."""
    
    ACCEPTED = "A"
    DATA_ENTRY = "I"
    OUT_FOR_DELIVERY = "S"
    DELIVERY_COMPLETE = "C"
    INTERBRANCH_TRANSIT = "M"
    DELIVERED = "Delivered"
    REJECTED = "Reject"
    RETURNED = "Return"
    
    @property
    def description(self) -> str:
        descriptions = {
            TrackingStatus.ACCEPTED: "Accepted by Pronto Branch",
            TrackingStatus.DATA_ENTRY: "Data Entry to System",
            TrackingStatus.OUT_FOR_DELIVERY: "Scanned Out to Delivery Route",
            TrackingStatus.DELIVERY_COMPLETE: "Consignment Delivery Complete",
            TrackingStatus.INTERBRANCH_TRANSIT: "Interbranch Transit",
            TrackingStatus.DELIVERED: "Consignment Delivered",
            TrackingStatus.REJECTED: "Consignment Rejected",
            TrackingStatus.RETURNED: "Consignment Returned",
        }
        return descriptions[self]
    
    @classmethod
    def describe(cls, code: str) -> str:
        """Description for a raw carrier code, falling back to the code itself."""
        try:
            return cls(code).description
        except ValueError:
            return code
