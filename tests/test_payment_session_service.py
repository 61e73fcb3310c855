"""
Tests for PaymentSessionService (session creation and status transitions).
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from shipsync.errors import (
    ConfigurationError,
    GatewayError,
    InvalidTransition,
    QuoteUnavailable,
    SessionNotFound,
    ValidationError,
)
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.payment_session_service import PaymentSessionService
from shipsync.services.pronto_service import ProntoService
from shipsync.services.session_store import SessionStore


@pytest.fixture
def service(db, pronto_service, mpgs_service):
    return PaymentSessionService(db, pronto=pronto_service, mpgs=mpgs_service)


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_total_includes_delivery_charge(self, service, fake_pronto, checkout_request):
        record = await service.create_session(checkout_request)

        assert record.amount == Decimal("1450.00")
        assert record.status == "PENDING"
        assert record.meta["pricing"] == {
            "itemAmount": 1000.0,
            "deliveryCharge": 450.0,
            "totalAmount": 1450.0,
            "currency": "LKR",
        }
        assert record.pronto_area_code == "3"
        assert record.pronto_cost == Decimal("450.00")
        assert fake_pronto.bodies("pkg.amount")[0]["data"] == {
            "customer_code": "A001",
            "pkg_weight": 1.0,
            "pronto_ac": "3",
        }

    @pytest.mark.asyncio
    async def test_gateway_charged_total(self, service, fake_mpgs, checkout_request):
        record = await service.create_session(checkout_request)

        body = fake_mpgs.last_body()
        assert body["apiOperation"] == "CREATE_CHECKOUT_SESSION"
        assert body["order"]["amount"] == "1450.00"
        assert body["order"]["id"] == "ORD-2024-001"
        assert body["interaction"]["returnUrl"] == "http://localhost:8000/payment-success?orderId=ORD-2024-001"
        assert record.session_id == "SESSION0000000001"
        assert record.meta["gatewayResponse"]["result"] == "SUCCESS"

    @pytest.mark.asyncio
    async def test_persisted_under_gateway_session_id(self, db, service, checkout_request):
        await service.create_session(checkout_request)

        stored = await SessionStore(db).get("SESSION0000000001")
        assert stored is not None
        assert stored.receiver_address == "45 Station Road, Vavuniya"
        assert stored.is_cod is True

    @pytest.mark.asyncio
    async def test_rounds_half_up(self, service, fake_pronto, checkout_request):
        fake_pronto.responses["pkg.amount"] = {"status": "1", "live_amount": {"amount": "99.995"}}
        checkout_request["amount"] = "0.01"

        record = await service.create_session(checkout_request)

        assert record.amount == Decimal("100.01")

    @pytest.mark.asyncio
    async def test_order_id_generated_when_missing(self, service, checkout_request):
        del checkout_request["orderId"]

        record = await service.create_session(checkout_request)

        assert len(record.order_id) == 36

    @pytest.mark.asyncio
    async def test_quote_failure_aborts_everything(self, db, service, fake_pronto, fake_mpgs, checkout_request):
        fake_pronto.responses["pkg.amount"] = {"status": "0", "status_ref": "Invalid area"}

        with pytest.raises(QuoteUnavailable):
            await service.create_session(checkout_request)

        assert fake_mpgs.requests == []
        assert await SessionStore(db).list_sessions() == []

    @pytest.mark.asyncio
    async def test_out_of_range_quote_is_unavailable(self, db, service, fake_pronto, fake_mpgs, checkout_request):
        fake_pronto.responses["pkg.amount"] = {"status": "1", "live_amount": {"amount": "1e30"}}

        with pytest.raises(QuoteUnavailable):
            await service.create_session(checkout_request)

        assert fake_mpgs.requests == []
        assert await SessionStore(db).list_sessions() == []

    @pytest.mark.asyncio
    async def test_unusable_carrier_url_is_quote_unavailable(self, db, mpgs_service, fake_mpgs, checkout_request):
        pronto = ProntoService(
            base_url="ftp://carrier.invalid/PR_API.aspx",
            username="apiuatuser",
            password="pronto-password",
            customer_code="A001",
        )
        service = PaymentSessionService(db, pronto=pronto, mpgs=mpgs_service)

        with pytest.raises(QuoteUnavailable):
            await service.create_session(checkout_request)

        assert fake_mpgs.requests == []

    @pytest.mark.asyncio
    async def test_out_of_range_amount(self, service, fake_pronto, fake_mpgs, checkout_request):
        checkout_request["amount"] = "1e30"

        with pytest.raises(ValidationError) as exc_info:
            await service.create_session(checkout_request)

        assert exc_info.value.details == [{"field": "amount", "message": "Amount is out of range"}]
        assert fake_pronto.calls == []
        assert fake_mpgs.requests == []

    @pytest.mark.asyncio
    async def test_gateway_failure_persists_nothing(self, db, service, fake_mpgs, checkout_request):
        fake_mpgs.response = httpx.Response(400, json={
            "result": "ERROR",
            "error": {"cause": "INVALID_REQUEST", "explanation": "Invalid merchant"},
        })

        with pytest.raises(GatewayError, match="Invalid merchant"):
            await service.create_session(checkout_request)

        assert await SessionStore(db).list_sessions() == []

    @pytest.mark.asyncio
    async def test_gateway_non_success_result(self, service, fake_mpgs, checkout_request):
        fake_mpgs.response = httpx.Response(200, json={"result": "PENDING"})

        with pytest.raises(GatewayError):
            await service.create_session(checkout_request)

    @pytest.mark.asyncio
    async def test_invalid_input(self, service, fake_pronto, checkout_request):
        checkout_request["shipment"]["weight"] = 250

        with pytest.raises(ValidationError) as exc_info:
            await service.create_session(checkout_request)

        assert [d["field"] for d in exc_info.value.details] == ["shipment.weight"]
        assert fake_pronto.calls == []

    @pytest.mark.asyncio
    async def test_missing_gateway_configuration(self, db, pronto_service, fake_pronto, checkout_request):
        mpgs = MpgsService(merchant_id="", api_password="x", api_base_url="https://mpgs.test")
        service = PaymentSessionService(db, pronto=pronto_service, mpgs=mpgs)

        with pytest.raises(ConfigurationError, match="MPGS_MERCHANT_ID"):
            await service.create_session(checkout_request)

        assert fake_pronto.calls == []


class TestTransition:

    @pytest.mark.asyncio
    async def test_success_completes(self, service, seed_session):
        await seed_session()
        payload = {"sessionId": "SESSION0000000001", "result": "SUCCESS"}

        record = await service.transition("SESSION0000000001", True, payload)

        assert record.status == "COMPLETED"
        assert record.meta["lastWebhookPayload"] == payload
        assert record.meta["pricing"]["totalAmount"] == 1450.0

    @pytest.mark.asyncio
    async def test_failure_fails(self, service, seed_session):
        await seed_session()

        record = await service.transition("SESSION0000000001", False, {"result": "FAILURE"})

        assert record.status == "FAILED"

    @pytest.mark.asyncio
    async def test_replay_is_idempotent_and_accumulates(self, service, seed_session):
        await seed_session()
        first = {"sessionId": "SESSION0000000001", "result": "SUCCESS", "attempt": 1}
        second = {"sessionId": "SESSION0000000001", "result": "SUCCESS", "attempt": 2}

        await service.transition("SESSION0000000001", True, first)
        record = await service.transition("SESSION0000000001", True, second)

        assert record.status == "COMPLETED"
        history = record.meta["webhookHistory"]
        assert [entry["payload"] for entry in history] == [first, second]
        assert all(entry["receivedAt"] for entry in history)
        assert record.meta["lastWebhookAt"] == history[-1]["receivedAt"]

    @pytest.mark.asyncio
    async def test_conflicting_replay_rejected(self, service, seed_session):
        await seed_session()
        await service.transition("SESSION0000000001", True, {})

        with pytest.raises(InvalidTransition):
            await service.transition("SESSION0000000001", False, {})

    @pytest.mark.asyncio
    async def test_missing_session(self, service):
        with pytest.raises(SessionNotFound):
            await service.transition("NOPE", True, {})

    @pytest.mark.asyncio
    async def test_does_not_touch_carrier_or_gateway(self, db, seed_session):
        await seed_session()
        mpgs = AsyncMock(spec=MpgsService)
        pronto = AsyncMock()
        service = PaymentSessionService(db, pronto=pronto, mpgs=mpgs)

        await service.transition("SESSION0000000001", True, {})

        assert pronto.method_calls == []
        assert mpgs.method_calls == []
