"""
Pronto Service - Pronto Lanka carrier API client.

The carrier exposes a single endpoint; operations are selected with a
``method`` query parameter and a ``{"request": method, "data": {...}}``
JSON body, authenticated with HTTP Basic credentials.

Transport failures are retried (2 extra attempts, 2s then 4s backoff).
A certificate failure against a UAT endpoint gets exactly one retry over
a relaxed-TLS client; production endpoints never relax TLS.
"""

import asyncio
import logging
import ssl
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

import httpx

from shipsync.config import settings
from shipsync.errors import CarrierError, CarrierTransportError, CarrierRejection
from shipsync.fsm.states import ZoneCode, TrackingStatus

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAYS = (2.0, 4.0)

# Tracking number pools
TNO_CODE_PREPAID = "1"
TNO_CODE_COD = "2"

STATUS_FAILED = "0"
INSERT_ACCEPTED = "1"

# Every httpx transport failure is retried except a URL scheme httpx can't speak
TRANSPORT_ERRORS = (
    httpx.TransportError,
    asyncio.TimeoutError,
)


@dataclass(frozen=True)
class TransportStrategy:
    """
    How the HTTP client for a carrier call is built.

    ``transport`` lets tests (or a proxy) swap the underlying httpx transport.
    """
    name: str
    verify: bool
    transport: Optional[httpx.AsyncBaseTransport] = None

    def client(self, auth: httpx.Auth, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=auth,
            timeout=timeout,
            verify=self.verify,
            transport=self.transport,
        )


def standard_transport(transport: Optional[httpx.AsyncBaseTransport] = None) -> TransportStrategy:
    return TransportStrategy(name="standard", verify=True, transport=transport)


def relaxed_tls_transport(transport: Optional[httpx.AsyncBaseTransport] = None) -> TransportStrategy:
    return TransportStrategy(name="relaxed-tls", verify=False, transport=transport)


def is_certificate_error(error: BaseException) -> bool:
    """True if the error (or anything it wraps) is a certificate validation failure."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLCertVerificationError):
            return True
        if "CERTIFICATE_VERIFY_FAILED" in str(current):
            return True
        current = current.__cause__ or current.__context__
    return False


def is_non_production_endpoint(base_url: str) -> bool:
    host = (urlparse(base_url).hostname or "").lower()
    return "uat" in host or host in ("localhost", "127.0.0.1")


def should_relax_tls(base_url: str, app_env: str, error: BaseException) -> bool:
    """Relaxed TLS only for certificate failures against non-production endpoints."""
    if app_env == "production":
        return False
    return is_certificate_error(error) and is_non_production_endpoint(base_url)


def parse_amount(raw: Any) -> Decimal:
    """Parse a carrier amount field into a 2dp Decimal."""
    if isinstance(raw, bool) or raw is None:
        raise CarrierError(f"Pronto returned a non-numeric amount: {raw!r}")
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise CarrierError(f"Pronto returned a non-numeric amount: {raw!r}") from e
    if not amount.is_finite():
        raise CarrierError(f"Pronto returned a non-finite amount: {raw!r}")
    try:
        return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise CarrierError(f"Pronto returned an out-of-range amount: {raw!r}") from e


def format_amount(value: Decimal) -> str:
    return str(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


async def _backoff(delay: float) -> None:
    await asyncio.sleep(delay)


@dataclass
class CostQuote:
    cost: Decimal
    area_code: ZoneCode
    customer_code: str
    raw: Dict[str, Any]


@dataclass
class ShipmentInsertResult:
    """Carrier answer to tno.insert plus the exact payload that was sent."""
    status: str
    raw: Dict[str, Any]
    payload: Dict[str, Any]

    @property
    def accepted(self) -> bool:
        return self.status == INSERT_ACCEPTED

    @property
    def status_ref(self) -> str:
        return str(self.raw.get("status_ref") or "Unknown error")


@dataclass
class TrackingEvent:
    status: str
    date: str
    time: str
    location: str = ""
    remarks: str = ""

    @property
    def status_description(self) -> str:
        return TrackingStatus.describe(self.status)

    def to_dict(self) -> Dict[str, str]:
        return {
            "status": self.status,
            "statusDescription": self.status_description,
            "date": self.date,
            "time": self.time,
            "location": self.location,
            "remarks": self.remarks,
        }


class ProntoService:
    """Service for Pronto Lanka cost quotes, tracking numbers and shipments."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        customer_code: Optional[str] = None,
        app_env: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        connect_timeout_seconds: Optional[float] = None,
        standard: Optional[TransportStrategy] = None,
        relaxed: Optional[TransportStrategy] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.pronto_api_base_url
        self.username = username if username is not None else settings.pronto_api_username
        self.password = password if password is not None else settings.pronto_api_password
        self.customer_code = customer_code or settings.pronto_customer_code
        self.app_env = app_env or settings.app_env
        self.timeout_seconds = timeout_seconds or settings.pronto_timeout_seconds
        connect_timeout = connect_timeout_seconds or settings.pronto_connect_timeout_seconds

        self.auth = httpx.BasicAuth(self.username, self.password)
        self.timeout = httpx.Timeout(self.timeout_seconds, connect=connect_timeout)
        self.standard = standard or standard_transport()
        self.relaxed = relaxed or relaxed_tls_transport()

        logger.debug(
            f"Pronto client: {self.base_url} user={self.username} "
            f"customer={self.customer_code} password_set={bool(self.password)}"
        )

    async def get_rate_structure(self, customer_code: Optional[str] = None) -> Dict[str, Any]:
        """Full rate table for a customer code."""
        return await self._request("calc.method", {
            "customer_code": customer_code or self.customer_code,
        })

    async def quote_cost(
        self,
        customer_code: Optional[str],
        weight_kg: float,
        zone: ZoneCode,
    ) -> CostQuote:
        """Delivery charge for a package of ``weight_kg`` into ``zone``."""
        code = customer_code or self.customer_code
        response = await self._request("pkg.amount", {
            "customer_code": code,
            "pkg_weight": weight_kg,
            "pronto_ac": zone.value,
        })

        live_amount = response.get("live_amount")
        raw_amount = live_amount.get("amount") if isinstance(live_amount, dict) else None

        return CostQuote(
            cost=parse_amount(raw_amount),
            area_code=zone,
            customer_code=code,
            raw=response,
        )

    async def allocate_tracking_number(self, customer_code: Optional[str], is_cod: bool) -> str:
        """Reserve a tracking number from the COD or prepaid pool."""
        response = await self._request("tno.request", {
            "tno_code": TNO_CODE_COD if is_cod else TNO_CODE_PREPAID,
            "customer_code": customer_code or self.customer_code,
        })

        allocation = response.get("emp_trackingno")
        tno = allocation.get("tno") if isinstance(allocation, dict) else None
        if not tno:
            raise CarrierError("Pronto did not return a tracking number", details=response)
        return str(tno)

    async def insert_shipment(
        self,
        tracking_number: str,
        sender,
        receiver,
        item_value: Decimal,
        zone: ZoneCode,
        same_day: bool = False,
        sensitive: bool = False,
        notes: Optional[str] = None,
    ) -> ShipmentInsertResult:
        """
        Submit shipment details for an allocated tracking number.

        ``sender``/``receiver`` need ``name``, ``phone`` and ``address``.
        Status "1" means accepted; anything else is a carrier rejection.
        """
        payload = {
            "tno": tracking_number,
            "sen_name": sender.name or None,
            "sen_phone": sender.phone or None,
            "sen_address": sender.address or None,
            "rec_name": receiver.name,
            "rec_address": receiver.address,
            "rec_phone": receiver.phone,
            "pronto_lc": zone.location_code,
            "ivalue": format_amount(item_value),
            "sameday_del": "yes" if same_day else "no",
            "senc": "yes" if sensitive else "no",
            "sp_note": notes or None,
        }

        response = await self._request("tno.insert", payload)

        return ShipmentInsertResult(
            status=str(response.get("status", "")),
            raw=response,
            payload=payload,
        )

    async def get_tracking_history(
        self,
        customer_code: Optional[str],
        tracking_number: str,
    ) -> List[TrackingEvent]:
        """Carrier tracking history, oldest first. The last entry is the current status."""
        response = await self._request("tno.detail", {
            "customer_code": customer_code or self.customer_code,
            "tno": tracking_number,
        })

        entries = response.get("emp_tracking") or []
        if not isinstance(entries, list):
            raise CarrierError("Pronto returned malformed tracking history", details=response)

        return [
            TrackingEvent(
                status=str(entry.get("status", "")),
                date=str(entry.get("date", "")),
                time=str(entry.get("time", "")),
                location=entry.get("location") or "",
                remarks=entry.get("remarks") or "",
            )
            for entry in entries
            if isinstance(entry, dict)
        ]

    async def _request(self, method: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call a carrier method with retry and TLS fallback.

        Only CarrierTransportError is retried. Bad HTTP status and
        carrier failure status propagate immediately.
        """
        body = {"request": method, "data": data}
        strategy = self.standard
        relaxed_used = False
        attempt = 0

        while True:
            try:
                return await self._send(strategy, method, body, attempt)
            except CarrierTransportError as e:
                if e.certificate_failure:
                    if not relaxed_used and should_relax_tls(self.base_url, self.app_env, e):
                        logger.warning(
                            f"Pronto certificate validation failed for {method}; "
                            f"retrying once with relaxed TLS against {self.base_url}"
                        )
                        strategy = self.relaxed
                        relaxed_used = True
                        continue
                    raise

                if attempt >= MAX_RETRIES:
                    raise

                delay = RETRY_DELAYS[attempt]
                attempt += 1
                logger.info(f"Retrying Pronto API request {method} in {delay}s...")
                await _backoff(delay)

    async def _send(
        self,
        strategy: TransportStrategy,
        method: str,
        body: Dict[str, Any],
        attempt: int,
    ) -> Dict[str, Any]:
        context = {"carrier_method": method, "attempt": attempt + 1, "transport": strategy.name}
        logger.info(f"Pronto API request: {method} (attempt {attempt + 1}, {strategy.name}) {body}", extra=context)

        try:
            response = await asyncio.wait_for(
                self._post(strategy, method, body),
                timeout=self.timeout_seconds,
            )
        except httpx.UnsupportedProtocol as e:
            logger.error(f"Pronto API URL {self.base_url} is not usable: {e}", extra=context)
            raise CarrierError(
                f"Pronto API URL is not usable for {method}: {e}",
                details={"method": method, "baseUrl": self.base_url},
            ) from e
        except TRANSPORT_ERRORS as e:
            reason = str(e) or type(e).__name__
            logger.error(
                f"Pronto API request failed for {method} (attempt {attempt + 1}): {reason}",
                extra=context,
            )
            raise CarrierTransportError(
                f"Pronto API transport failure for {method}: {reason}",
                details={"method": method, "attempt": attempt + 1},
                certificate_failure=is_certificate_error(e),
            ) from e

        if not response.is_success:
            logger.error(
                f"Pronto API HTTP error for {method}: {response.status_code} {response.text}",
                extra=context,
            )
            raise CarrierError(
                f"HTTP error! status: {response.status_code}",
                details={"method": method, "status": response.status_code},
            )

        try:
            result = response.json()
        except ValueError as e:
            logger.error(f"Pronto API returned non-JSON body for {method}: {response.text}")
            raise CarrierError(f"Pronto API returned a non-JSON body for {method}") from e

        logger.info(f"Pronto API response: {method} {result}", extra=context)

        if not isinstance(result, dict):
            raise CarrierError(f"Pronto API returned an unexpected body for {method}", details=result)

        if str(result.get("status")) == STATUS_FAILED:
            raise CarrierRejection(
                f"Pronto API error: {result.get('status_ref') or 'Unknown error'}",
                details=result,
            )

        return result

    async def _post(
        self,
        strategy: TransportStrategy,
        method: str,
        body: Dict[str, Any],
    ) -> httpx.Response:
        async with strategy.client(self.auth, self.timeout) as client:
            return await client.post(
                self.base_url,
                params={"method": method},
                json=body,
            )
