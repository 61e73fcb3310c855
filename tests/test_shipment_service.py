"""
Tests for ShipmentService (carrier orchestration).
"""

from decimal import Decimal

import pytest

from shipsync.errors import InvalidTransition, SessionNotFound, ShipmentRejected
from shipsync.schemas import ShipmentRequest
from shipsync.services.session_store import SessionStore
from shipsync.services.shipment_service import ShipmentService, shipment_request_from_session


@pytest.fixture
def service(db, pronto_service):
    return ShipmentService(db, pronto_service)


def direct_request(**overrides) -> ShipmentRequest:
    data = {
        "orderId": "ORD-2024-009",
        "senderName": "Kifgo Stores",
        "senderPhone": "0112345678",
        "senderAddress": "12 Galle Road, Colombo 03",
        "receiverName": "Kamal Silva",
        "receiverAddress": "7 Temple Road, Dehiwala",
        "receiverPhone": "0771112223",
        "itemValue": 5000,
        "weight": 2.5,
        "location": "Dehiwala",
    }
    data.update(overrides)
    return ShipmentRequest.model_validate(data)


class TestCreateShipment:

    @pytest.mark.asyncio
    async def test_call_order(self, service, fake_pronto):
        await service.create_shipment(direct_request())

        assert fake_pronto.methods() == ["tno.request", "pkg.amount", "tno.insert"]

    @pytest.mark.asyncio
    async def test_result(self, service, fake_pronto):
        result = await service.create_shipment(direct_request())

        assert result.tracking_number == "COD0000120"
        assert result.cost == Decimal("450.00")
        assert result.status == "1"
        assert result.area_code.value == "2"
        assert result.payload["pronto_lc"] == "0002"
        assert result.payload["ivalue"] == "5000.00"
        assert result.to_dict()["orderId"] == "ORD-2024-009"
        assert "sessionId" not in result.to_dict()

    @pytest.mark.asyncio
    async def test_prepaid_declares_supplied_item_value(self, service, fake_pronto):
        result = await service.create_shipment(direct_request(isCod=False, itemValue="2750.5"))

        assert fake_pronto.bodies("tno.request")[0]["data"]["tno_code"] == "1"
        assert result.payload["ivalue"] == "2750.50"

    @pytest.mark.asyncio
    async def test_prepaid_session_declares_session_amount(self, db, service, seed_session, fake_pronto):
        await seed_session(is_cod=False)

        await service.create_shipment_for_session("SESSION0000000001")

        assert fake_pronto.bodies("tno.insert")[0]["data"]["ivalue"] == "1450.00"

    @pytest.mark.asyncio
    async def test_rejected_insert(self, service, fake_pronto):
        fake_pronto.responses["tno.insert"] = {"status": "0", "status_ref": "Invalid receiver phone"}

        with pytest.raises(ShipmentRejected, match="Shipment creation failed: Invalid receiver phone"):
            await service.create_shipment(direct_request())

    @pytest.mark.asyncio
    async def test_unaccepted_insert_status(self, service, fake_pronto):
        fake_pronto.responses["tno.insert"] = {"status": "2", "status_ref": "Pending review"}

        with pytest.raises(ShipmentRejected, match="Pending review"):
            await service.create_shipment(direct_request())

    @pytest.mark.asyncio
    async def test_rejected_insert_leaks_tracking_number(self, service, fake_pronto):
        """The allocated tracking number is not handed back to the carrier."""
        fake_pronto.responses["tno.insert"] = {"status": "0", "status_ref": "Rejected"}

        with pytest.raises(ShipmentRejected):
            await service.create_shipment(direct_request())

        assert fake_pronto.methods() == ["tno.request", "pkg.amount", "tno.insert"]


class TestCreateShipmentForSession:

    @pytest.mark.asyncio
    async def test_request_rebuilt_from_session(self, seed_session):
        record = await seed_session(special_notes="Fragile")

        request = shipment_request_from_session(record)

        assert request.order_id == "ORD-2024-001"
        assert request.receiver_name == "Nimali Perera"
        assert request.item_value == Decimal("1450.00")
        assert request.special_notes == "Fragile"
        assert request.customer_code == "A001"

    @pytest.mark.asyncio
    async def test_success_persists_carrier_outcome(self, db, service, seed_session, fake_pronto):
        await seed_session()

        result = await service.create_shipment_for_session("SESSION0000000001")

        record = await SessionStore(db).get("SESSION0000000001")
        assert result.session_id == "SESSION0000000001"
        assert record.status == "COMPLETED"
        assert record.pronto_status == "SHIPMENT_CREATED"
        assert record.pronto_tracking_number == "COD0000120"
        assert record.pronto_cost == Decimal("450.00")
        assert record.pronto_area_code == "3"
        assert record.pronto_payload == fake_pronto.bodies("tno.insert")[0]["data"]
        assert record.pronto_response == {"status": "1", "status_ref": "Success"}
        assert record.pronto_payload["rec_address"] == "45 Station Road, Vavuniya"
        assert record.pronto_payload["ivalue"] == "1450.00"

    @pytest.mark.asyncio
    async def test_rejection_leaves_session_untouched(self, db, service, seed_session, fake_pronto):
        await seed_session()
        fake_pronto.responses["tno.insert"] = {"status": "0", "status_ref": "Rejected"}

        with pytest.raises(ShipmentRejected):
            await service.create_shipment_for_session("SESSION0000000001")

        record = await SessionStore(db).get("SESSION0000000001")
        assert record.status == "PENDING"
        assert record.pronto_tracking_number is None

    @pytest.mark.asyncio
    async def test_failed_payment_cannot_ship(self, service, seed_session, fake_pronto):
        await seed_session(status="FAILED")

        with pytest.raises(InvalidTransition):
            await service.create_shipment_for_session("SESSION0000000001")

        assert fake_pronto.calls == []

    @pytest.mark.asyncio
    async def test_missing_session(self, service):
        with pytest.raises(SessionNotFound):
            await service.create_shipment_for_session("NOPE")


@pytest.mark.asyncio
async def test_record_failure_merges_metadata(db, service, seed_session):
    await seed_session()

    record = await service.record_failure("SESSION0000000001", ShipmentRejected("Shipment creation failed: Rejected"))

    assert record.pronto_status == "FAILED"
    assert record.meta["lastShipmentError"] == "Shipment creation failed: Rejected"
    assert record.meta["lastShipmentErrorAt"]
    assert record.meta["pricing"]["deliveryCharge"] == 450.0
