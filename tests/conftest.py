"""
Pytest configuration and fixtures.
"""

import sys
import os
import json
from decimal import Decimal
from typing import AsyncGenerator, Any, Dict, List, Tuple

# Settings are read at import time
os.environ["APP_ENV"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BASE_URL"] = "http://localhost:8000"
os.environ["IPG_WEBHOOK_SECRET"] = "test-secret"
os.environ["MPGS_MERCHANT_ID"] = "TESTMERCHANT"
os.environ["MPGS_API_PASSWORD"] = "mpgs-password"
os.environ["MPGS_API_BASE_URL"] = "https://mpgs.test"
os.environ["MPGS_CURRENCY"] = "LKR"
os.environ["PRONTO_API_BASE_URL"] = "https://uat-api.prontolanka.lk:18443/PR_API.aspx"
os.environ["PRONTO_CUSTOMER_CODE"] = "A001"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.append(os.getcwd())

from shipsync.database import Base
import shipsync.models  # noqa: F401
from shipsync.services.mpgs_service import MpgsService
from shipsync.services.pronto_service import (
    ProntoService,
    standard_transport,
    relaxed_tls_transport,
)
from shipsync.services.session_store import SessionStore

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite://"

WEBHOOK_SECRET = "test-secret"
UAT_BASE_URL = "https://uat-api.prontolanka.lk:18443/PR_API.aspx"


class FakeProntoApi:
    """
    In-process stand-in for the Pronto endpoint.

    ``responses[method]`` may be a dict (JSON body), an httpx.Response,
    an exception instance (raised), a callable taking the request body,
    or a list of any of these consumed one per call.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.responses: Dict[str, Any] = {
            "pkg.amount": {"status": "1", "live_amount": {"amount": "450.00"}},
            "tno.request": {"status": "1", "emp_trackingno": {"tno": "COD0000120"}},
            "tno.insert": {"status": "1", "status_ref": "Success"},
            "tno.detail": {
                "status": "1",
                "emp_tracking": [
                    {"status": "I", "date": "2024-01-15", "time": "09:00:00", "location": "Colombo Branch"},
                    {"status": "A", "date": "2024-01-15", "time": "10:30:00", "location": "Colombo Branch", "remarks": "Package received"},
                ],
            },
            "calc.method": {"status": "1", "rates": [{"zone": "1", "first_kg": "350.00"}]},
        }

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]

    def bodies(self, method: str) -> List[Dict[str, Any]]:
        return [body for called, body in self.calls if called == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.url.params.get("method")
        body = json.loads(request.content)
        self.calls.append((method, body))

        reply = self.responses[method]
        if isinstance(reply, list):
            reply = reply.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(body)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)


class FakeMpgsApi:
    """Stand-in for the MPGS session endpoint."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.session_ids = iter(f"SESSION{n:010d}" for n in range(1, 1000))
        self.response: Any = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.response is not None:
            return self.response
        return httpx.Response(200, json={
            "merchant": "TESTMERCHANT",
            "result": "SUCCESS",
            "session": {"id": next(self.session_ids), "updateStatus": "NO_UPDATE", "version": "a1b2c3"},
            "successIndicator": "f0e1d2c3b4a59687",
        })

    def last_body(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create async engine for tests."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_pronto() -> FakeProntoApi:
    return FakeProntoApi()


@pytest.fixture
def fake_mpgs() -> FakeMpgsApi:
    return FakeMpgsApi()


@pytest.fixture
def pronto_service(fake_pronto) -> ProntoService:
    transport = httpx.MockTransport(fake_pronto.handler)
    return ProntoService(
        base_url=UAT_BASE_URL,
        username="apiuatuser",
        password="pronto-password",
        customer_code="A001",
        app_env="development",
        standard=standard_transport(transport),
        relaxed=relaxed_tls_transport(transport),
    )


@pytest.fixture
def mpgs_service(fake_mpgs) -> MpgsService:
    return MpgsService(
        merchant_id="TESTMERCHANT",
        api_password="mpgs-password",
        api_base_url="https://mpgs.test",
        api_version="70",
        return_base_url="http://localhost:8000",
        merchant_name="Kifgo",
        transport=httpx.MockTransport(fake_mpgs.handler),
    )


def session_data(**overrides) -> Dict[str, Any]:
    data = {
        "session_id": "SESSION0000000001",
        "order_id": "ORD-2024-001",
        "amount": Decimal("1450.00"),
        "currency": "LKR",
        "description": "Handloom saree",
        "sender_name": "Kifgo Stores",
        "sender_phone": "0112345678",
        "sender_address": "12 Galle Road, Colombo 03",
        "receiver_name": "Nimali Perera",
        "receiver_phone": "0779876543",
        "receiver_address": "45 Station Road, Vavuniya",
        "location": "Vavuniya",
        "weight": 1.0,
        "is_cod": True,
        "same_day_delivery": False,
        "is_sensitive": False,
        "special_notes": None,
        "pronto_customer_code": "A001",
        "meta": {"pricing": {"itemAmount": 1000.0, "deliveryCharge": 450.0, "totalAmount": 1450.0, "currency": "LKR"}},
    }
    data.update(overrides)
    return data


@pytest.fixture
def seed_session(db):
    """Factory that stores a PENDING session and returns it."""
    async def _seed(**overrides):
        return await SessionStore(db).create(session_data(**overrides))
    return _seed


@pytest.fixture
def checkout_request() -> Dict[str, Any]:
    return {
        "amount": 1000,
        "currency": "LKR",
        "description": "Handloom saree",
        "orderId": "ORD-2024-001",
        "sender": {"name": "Kifgo Stores", "phone": "0112345678", "address": "12 Galle Road, Colombo 03"},
        "receiver": {"name": "Nimali Perera", "phone": "0779876543", "address": "45 Station Road, Vavuniya"},
        "shipment": {"location": "Vavuniya", "weight": 1, "isCod": True},
    }


@pytest_asyncio.fixture
async def client(db, pronto_service, mpgs_service) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app with test collaborators injected."""
    from shipsync.main import app
    from shipsync.database import get_db
    from shipsync.api.deps import get_mpgs_service, get_pronto_service, get_webhook_secret

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pronto_service] = lambda: pronto_service
    app.dependency_overrides[get_mpgs_service] = lambda: mpgs_service
    app.dependency_overrides[get_webhook_secret] = lambda: WEBHOOK_SECRET

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
