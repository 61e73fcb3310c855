"""
Shared FastAPI dependencies.
Overridden in tests to inject fake carrier and gateway transports.
"""

from shipsync.config import settings
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.pronto_service import ProntoService


def get_pronto_service() -> ProntoService:
    """Carrier client built from settings."""
    return ProntoService()


def get_mpgs_service() -> MpgsService:
    """Payment gateway client built from settings."""
    return MpgsService()


def get_webhook_secret() -> str:
    """Shared secret expected in ``x-notification-secret``."""
    return settings.ipg_webhook_secret
