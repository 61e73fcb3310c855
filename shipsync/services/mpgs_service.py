"""
MPGS Service - Mastercard Payment Gateway hosted checkout sessions.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Dict, Any

import httpx

from shipsync.config import settings
from shipsync.errors import ConfigurationError, GatewayError
from shipsync.services.pronto_service import format_amount

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 127


class MpgsService:
    """Creates hosted-checkout sessions on the payment gateway."""

    def __init__(
        self,
        merchant_id: Optional[str] = None,
        api_password: Optional[str] = None,
        api_base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        return_base_url: Optional[str] = None,
        merchant_name: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.merchant_id = merchant_id if merchant_id is not None else settings.mpgs_merchant_id
        self.api_password = api_password if api_password is not None else settings.mpgs_api_password
        self.api_base_url = (api_base_url if api_base_url is not None else settings.mpgs_api_base_url).rstrip("/")
        self.api_version = api_version or settings.mpgs_api_version
        self.return_base_url = return_base_url if return_base_url is not None else settings.base_url
        self.merchant_name = merchant_name or settings.mpgs_merchant_name
        self.transport = transport

    def ensure_configured(self) -> None:
        """Fail fast when gateway configuration is missing."""
        required = {
            "MPGS_MERCHANT_ID": self.merchant_id,
            "MPGS_API_PASSWORD": self.api_password,
            "MPGS_API_BASE_URL": self.api_base_url,
            "BASE_URL": self.return_base_url,
        }
        for key, value in required.items():
            if not value:
                raise ConfigurationError(f"Configuration error: Missing {key}")

    @property
    def session_url(self) -> str:
        return (
            f"{self.api_base_url}/api/rest/version/{self.api_version}"
            f"/merchant/{self.merchant_id}/session"
        )

    def build_session_request(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str,
    ) -> Dict[str, Any]:
        return {
            "apiOperation": "CREATE_CHECKOUT_SESSION",
            "interaction": {
                "operation": "PURCHASE",
                "merchant": {"name": self.merchant_name},
                "returnUrl": f"{self.return_base_url}/payment-success?orderId={order_id}",
            },
            "order": {
                "id": order_id,
                "amount": format_amount(amount),
                "currency": currency,
                "description": description[:DESCRIPTION_LIMIT],
                "customerOrderDate": date.today().isoformat(),
            },
        }

    async def create_checkout_session(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str,
    ) -> Dict[str, Any]:
        """
        Create a hosted-checkout session.

        Returns the full gateway response; ``response["session"]["id"]``
        is the session identifier.
        """
        self.ensure_configured()

        request_body = self.build_session_request(order_id, amount, currency, description)
        auth = httpx.BasicAuth(f"merchant.{self.merchant_id}", self.api_password)

        logger.info(f"MPGS create session for order {order_id}: {request_body['order']['amount']} {currency}")

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(
                    self.session_url,
                    json=request_body,
                    auth=auth,
                )
        except httpx.HTTPError as e:
            logger.error(f"MPGS request failed: {e}", exc_info=True)
            raise GatewayError(f"Gateway unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"body": data}

        error = data.get("error")
        error = error if isinstance(error, dict) else {}

        if not response.is_success:
            logger.error(f"Failed to create MPGS session: {response.status_code} {data}")
            raise GatewayError(
                error.get("explanation")
                or error.get("cause")
                or "Gateway error during session creation.",
                details=data,
            )

        session = data.get("session")
        if data.get("result") != "SUCCESS" or not isinstance(session, dict) or not session.get("id"):
            logger.error(f"MPGS session creation indicated failure despite HTTP OK: {data}")
            raise GatewayError(
                error.get("explanation")
                or "Gateway returned non-SUCCESS result for session creation.",
                details=data,
            )

        logger.info(f"MPGS session created: {session['id']} for order {order_id}")
        return data
