"""
Error taxonomy shared by services and the HTTP layer.

Every error carries a stable ``code`` and the HTTP status it maps to.
The API renders them as ``{"success": false, "error": {...}}``.
"""

from typing import Any, Optional


class SandboxError(Exception):
    """Base class for all expected failures."""
    
    code = "SERVER_ERROR"
    status_code = 500
    
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details
    
    def to_dict(self, include_details: bool = True) -> dict:
        error = {"code": self.code, "message": self.message}
        if include_details and self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(SandboxError):
    """Malformed or out-of-range caller input."""
    code = "VALIDATION_FAILED"
    status_code = 400


class InvalidPayload(SandboxError):
    """Webhook body without a usable session identifier."""
    code = "INVALID_PAYLOAD"
    status_code = 400


class Unauthorized(SandboxError):
    code = "UNAUTHORIZED"
    status_code = 401


class NotFound(SandboxError):
    code = "NOT_FOUND"
    status_code = 404


class SessionNotFound(NotFound):
    code = "SESSION_NOT_FOUND"
    
    def __init__(self, session_id: str):
        super().__init__(f"No local session for {session_id}")
        self.session_id = session_id


class DuplicateKey(SandboxError):
    code = "DUPLICATE_SESSION"
    status_code = 409


class InvalidTransition(SandboxError):
    """Status change that would move a session backwards or across terminals."""
    code = "INVALID_TRANSITION"
    status_code = 409


class ConfigurationError(SandboxError):
    """Missing deployment configuration. Not recoverable at request time."""
    code = "CONFIGURATION_ERROR"


class GatewayError(SandboxError):
    """Payment gateway rejected or failed the request."""
    code = "GATEWAY_ERROR"


class QuoteUnavailable(SandboxError):
    """Carrier cost quote failed; session creation is aborted."""
    code = "QUOTE_UNAVAILABLE"


class CarrierError(SandboxError):
    """Carrier returned something unusable (bad HTTP status, bad body)."""
    code = "CARRIER_ERROR"


class CarrierTransportError(CarrierError):
    """Network-level carrier failure (timeout, reset, DNS, TLS)."""
    code = "CARRIER_TRANSPORT_ERROR"
    
    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        certificate_failure: bool = False,
    ):
        super().__init__(message, details)
        self.certificate_failure = certificate_failure


class CarrierRejection(CarrierError):
    """Carrier answered with its failure status; never retried."""
    code = "CARRIER_REJECTED"


class ShipmentRejected(CarrierRejection):
    """Shipment insertion was not accepted by the carrier."""
    code = "SHIPMENT_REJECTED"


class ShipmentFailed(SandboxError):
    """Shipment creation failed after a successful payment."""
    code = "SHIPMENT_FAILED"
