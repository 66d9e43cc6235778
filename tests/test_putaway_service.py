import uuid

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.config import PutawayConfig
from app.core.exceptions import AlreadyCompleteError, InsufficientQuantityError, NotFoundError
from app.models.purchase import GRNLine, GoodsReceiptNote, GRNStatus, PutawayStatus
from app.models.putaway import PutawayAction, PutawayAuditEntry
from app.models.scan_tracking import ScanBinIndex, ScanSkuIndex
from app.models.wms import WarehouseBin
from app.services.bin_allocator import MatchType
from app.services.inventory_sync import InventoryOperation, InventorySyncClient
from app.services.putaway_service import PutawayService, putaway_reference
from app.services.scan_tracking_service import ScanTrackingStore


class Snapshot:
    """Committed state, read through a separate session."""

    def __init__(self, session_maker):
        self.session_maker = session_maker

    async def line(self, line_id) -> GRNLine:
        async with self.session_maker() as s:
            return (await s.execute(select(GRNLine).where(GRNLine.id == line_id))).scalar_one()

    async def bin(self, bin_code) -> WarehouseBin:
        async with self.session_maker() as s:
            return (await s.execute(select(WarehouseBin).where(WarehouseBin.bin_code == bin_code))).scalar_one()

    async def grn_status(self, grn_id) -> str:
        async with self.session_maker() as s:
            return (await s.execute(select(GoodsReceiptNote.status).where(GoodsReceiptNote.id == grn_id))).scalar_one()

    async def bin_skus(self, bin_code):
        async with self.session_maker() as s:
            return await ScanTrackingStore(s).get_bin_skus(bin_code)

    async def sku_index(self, sku):
        async with self.session_maker() as s:
            return (await s.execute(select(ScanSkuIndex).where(ScanSkuIndex.sku == sku))).scalar_one_or_none()

    async def audit_actions(self, sku=None):
        async with self.session_maker() as s:
            stmt = select(PutawayAuditEntry.action).order_by(PutawayAuditEntry.performed_at)
            if sku:
                stmt = stmt.where(PutawayAuditEntry.sku == sku)
            return list((await s.execute(stmt)).scalars().all())


@pytest.fixture
def snapshot(async_session_maker):
    return Snapshot(async_session_maker)


@pytest.fixture
def service(session, inventory_client):
    return PutawayService(session, PutawayConfig(), inventory_client)


async def receive(seed, sku="SKU-1", received=50, qc_pass=50, **extra):
    await seed.product(sku)
    grn = await seed.grn({
        "sku": sku,
        "ordered_qty": received,
        "received_qty": received,
        "qc_pass_qty": qc_pass,
        "held_qty": received - qc_pass,
        **extra,
    })
    return grn.id, grn.lines[0].id


# ==================== CONFIRM ====================

async def test_partial_then_complete_putaway(service, seed, snapshot, inventory_client):
    grn_id, line_id = await receive(seed, received=50, qc_pass=50)
    await seed.bin("A-01", capacity=100, current=10)

    first = await service.confirm_putaway("SKU-1", grn_id, 20, "A-01", "picker-7")

    assert first.ok is True
    assert first.status == PutawayStatus.PARTIAL
    assert first.remaining_qty == 30
    assert first.bin_current == 30
    assert first.grn_status == GRNStatus.PUT_AWAY_PENDING.value
    assert first.inventory_sync_warning is None

    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty) == (30, 20)
    assert line.putaway_status == PutawayStatus.PARTIAL.value
    assert (await snapshot.bin("A-01")).current_quantity == 30

    second = await service.confirm_putaway("SKU-1", grn_id, 30, "A-01", "picker-7")

    assert second.status == PutawayStatus.COMPLETED
    assert second.remaining_qty == 0
    assert second.grn_status == GRNStatus.PUT_AWAY_COMPLETE.value
    assert await snapshot.grn_status(grn_id) == GRNStatus.PUT_AWAY_COMPLETE.value

    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty) == (0, 50)
    assert (await snapshot.bin("A-01")).current_quantity == 60

    assert await snapshot.audit_actions("SKU-1") == [
        PutawayAction.CONFIRM_QUANTITY.value,
        PutawayAction.CONFIRM_QUANTITY.value,
        PutawayAction.COMPLETE_TASK.value,
    ]
    assert len(inventory_client.updates) == 2


async def test_grn_stays_pending_while_any_line_has_stock(service, seed, snapshot):
    await seed.product("SKU-1")
    await seed.product("SKU-2")
    grn = await seed.grn(
        {"sku": "SKU-1", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 5},
        {"sku": "SKU-2", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 5},
    )
    grn_id = grn.id
    await seed.bin("A-01")

    result = await service.confirm_putaway("SKU-1", grn_id, 5, "A-01", "picker-7")
    assert result.status == PutawayStatus.COMPLETED
    assert result.grn_status == GRNStatus.PUT_AWAY_PENDING.value

    result = await service.confirm_putaway("SKU-2", grn_id, 5, "A-01", "picker-7")
    assert result.grn_status == GRNStatus.PUT_AWAY_COMPLETE.value
    assert await snapshot.bin_skus("A-01") == ["SKU-1", "SKU-2"]


async def test_capacity_exceeded_changes_nothing(service, seed, snapshot, inventory_client):
    grn_id, line_id = await receive(seed, received=20, qc_pass=20)
    await seed.bin("A-01", capacity=50, current=45)

    result = await service.confirm_putaway("SKU-1", grn_id, 10, "A-01", "picker-7")

    assert result.ok is False
    assert result.code == "CAPACITY_EXCEEDED"
    assert result.status_code == 422
    assert result.details["current_quantity"] == 45

    assert (await snapshot.bin("A-01")).current_quantity == 45
    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty) == (20, 0)
    assert await snapshot.bin_skus("A-01") == []
    assert await snapshot.audit_actions() == []
    assert inventory_client.updates == []


async def test_filling_a_bin_exactly_is_allowed(service, seed, snapshot):
    grn_id, _ = await receive(seed, received=5, qc_pass=5)
    await seed.bin("A-01", capacity=50, current=45)

    result = await service.confirm_putaway("SKU-1", grn_id, 5, "A-01", "picker-7")

    assert result.ok is True
    assert (await snapshot.bin("A-01")).current_quantity == 50


async def test_completed_line_is_rejected(service, seed):
    grn_id, _ = await receive(seed, received=5, qc_pass=5)
    await seed.bin("A-01")
    await service.confirm_putaway("SKU-1", grn_id, 5, "A-01", "picker-7")

    result = await service.confirm_putaway("SKU-1", grn_id, 1, "A-01", "picker-7")

    assert result.ok is False
    assert result.code == "ALREADY_COMPLETE"
    assert result.status_code == 409


@pytest.mark.parametrize(
    "sku, bin_code",
    [("SKU-404", "A-01"), ("SKU-1", "Z-99")],
)
async def test_missing_line_or_bin(service, seed, sku, bin_code):
    grn_id, _ = await receive(seed)
    await seed.bin("A-01")

    result = await service.confirm_putaway(sku, grn_id, 1, bin_code, "picker-7")

    assert result.code == "NOT_FOUND"
    assert result.status_code == 404


async def test_unknown_grn(service, seed):
    await receive(seed)
    await seed.bin("A-01")

    result = await service.confirm_putaway("SKU-1", uuid.uuid4(), 1, "A-01", "picker-7")

    assert result.code == "NOT_FOUND"


async def test_bin_under_maintenance(service, seed):
    grn_id, _ = await receive(seed)
    await seed.bin("M-01", status="maintenance")

    result = await service.confirm_putaway("SKU-1", grn_id, 1, "M-01", "picker-7")

    assert result.code == "INVALID_BIN_STATE"


async def test_inactive_bin_is_reactivated(service, seed, snapshot):
    grn_id, _ = await receive(seed)
    await seed.bin("I-01", status="inactive")

    result = await service.confirm_putaway("SKU-1", grn_id, 3, "I-01", "picker-7")

    assert result.ok is True
    bin = await snapshot.bin("I-01")
    assert bin.status == "active"
    assert bin.current_quantity == 3
    assert bin.last_activity_at is not None


@pytest.mark.parametrize(
    "received, qc_pass, quantity, code",
    [
        (50, 40, 45, "INSUFFICIENT_QUANTITY"),
        (10, 10, 11, "INSUFFICIENT_QUANTITY"),
        (10, 10, 0, "VALIDATION_ERROR"),
        (10, 10, -3, "VALIDATION_ERROR"),
        (0, 0, 1, "VALIDATION_ERROR"),
    ],
)
async def test_quantity_rejections(service, seed, snapshot, received, qc_pass, quantity, code):
    grn_id, line_id = await receive(seed, received=received, qc_pass=qc_pass)
    await seed.bin("A-01", capacity=1000)

    result = await service.confirm_putaway("SKU-1", grn_id, quantity, "A-01", "picker-7")

    assert result.code == code
    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty) == (qc_pass, 0)


async def test_scan_indexes_are_cumulative(service, seed, snapshot):
    grn_id, _ = await receive(seed, received=30, qc_pass=30)
    await seed.bin("A-01")

    await service.confirm_putaway("SKU-1", grn_id, 10, "A-01", "picker-7")
    await service.confirm_putaway("SKU-1", grn_id, 5, "A-01", "picker-7")

    placement = await snapshot.sku_index("SKU-1")
    assert placement.quantity == 15
    assert placement.bin_code == "A-01"
    assert await snapshot.bin_skus("A-01") == ["SKU-1"]


async def test_failure_mid_transaction_rolls_everything_back(service, seed, snapshot, inventory_client):
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01", capacity=100, current=7)

    async def broken_placement(*args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    service.scans.upsert_sku_placement = broken_placement

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.code == "PERSISTENCE_ERROR"
    assert result.status_code == 500
    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty, line.putaway_status) == (10, 0, "pending")
    assert (await snapshot.bin("A-01")).current_quantity == 7
    assert await snapshot.bin_skus("A-01") == []
    assert await snapshot.audit_actions() == []
    assert inventory_client.updates == []


async def test_scan_index_race_is_merged_inside_the_putaway(service, seed, snapshot, session):
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01", current=3)
    session.add(ScanBinIndex(bin_code="A-01", skus=["SKU-9"]))
    await session.commit()

    real_get = service.scans.get_bin_index
    calls = []

    async def stale_first_read(bin_code, for_update=False):
        calls.append(bin_code)
        if len(calls) == 1:
            return None
        return await real_get(bin_code, for_update=for_update)

    service.scans.get_bin_index = stale_first_read

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.ok is True
    assert result.remaining_qty == 6
    assert len(calls) == 2
    assert await snapshot.bin_skus("A-01") == ["SKU-9", "SKU-1"]
    assert (await snapshot.bin("A-01")).current_quantity == 7
    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty) == (6, 4)
    assert (await snapshot.sku_index("SKU-1")).quantity == 4


async def test_unresolved_scan_index_race_rolls_back(service, seed, snapshot, session, inventory_client):
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01", current=3)
    session.add(ScanBinIndex(bin_code="A-01", skus=["SKU-9"]))
    await session.commit()

    async def always_missing(bin_code, for_update=False):
        return None

    service.scans.get_bin_index = always_missing

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.ok is False
    assert result.code == "TRANSIENT_CONFLICT"
    assert result.status_code == 409
    line = await snapshot.line(line_id)
    assert (line.qc_pass_qty, line.putaway_qty, line.putaway_status) == (10, 0, "pending")
    assert (await snapshot.bin("A-01")).current_quantity == 3
    assert await snapshot.bin_skus("A-01") == ["SKU-9"]
    assert await snapshot.sku_index("SKU-1") is None
    assert await snapshot.audit_actions() == []
    assert inventory_client.updates == []


# ==================== INVENTORY SYNC ====================

async def test_inventory_event_payload(service, seed, inventory_client):
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")

    await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7", remarks="top shelf")

    [update] = inventory_client.updates
    assert update.operation == InventoryOperation.PUTAWAY
    assert update.reference_id == putaway_reference(grn_id) == f"PUTAWAY-GRN-{grn_id}"
    assert update.quantity == 4
    assert update.performed_by == "picker-7"
    assert update.operation_details["bin_code"] == "A-01"
    assert update.operation_details["grn_line_id"] == str(line_id)
    assert update.operation_details["remarks"] == "top shelf"


async def test_inventory_failure_does_not_undo_putaway(session, seed, snapshot, failing_inventory_client):
    client = failing_inventory_client
    service = PutawayService(session, PutawayConfig(), client)
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.ok is True
    assert result.inventory_sync_warning == "Inventory update failed: inventory service unavailable"
    assert (await snapshot.line(line_id)).putaway_qty == 4
    assert (await snapshot.bin("A-01")).current_quantity == 4


async def test_unreadable_inventory_reply_is_a_warning(session, seed, snapshot):
    client = InventorySyncClient(
        base_url="http://inventory.test/api/inventory/update",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="OK")),
    )
    service = PutawayService(session, PutawayConfig(), client)
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.ok is True
    assert result.inventory_sync_warning == "Inventory update failed: invalid response body"
    assert (await snapshot.line(line_id)).putaway_qty == 4


async def test_unexpected_client_error_is_a_warning(session, seed, snapshot, inventory_client):
    async def crash(update):
        raise RuntimeError("event loop closed")

    inventory_client.update_inventory = crash
    service = PutawayService(session, PutawayConfig(), inventory_client)
    grn_id, line_id = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.ok is True
    assert result.inventory_sync_warning == "Inventory update failed: event loop closed"
    assert (await snapshot.bin("A-01")).current_quantity == 4


async def test_default_client_skips_sync(session, seed):
    service = PutawayService(session)
    grn_id, _ = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")

    result = await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    assert result.ok is True
    assert result.inventory_sync_warning is None


# ==================== PLACEMENT POLICIES ====================

async def test_moving_sku_to_another_bin_is_audited(service, seed, snapshot):
    grn_id, _ = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")
    await seed.bin("B-01")

    await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")
    result = await service.confirm_putaway("SKU-1", grn_id, 2, "B-01", "picker-7")

    assert result.ok is True
    assert PutawayAction.OVERRIDE_BIN.value in await snapshot.audit_actions("SKU-1")
    assert (await snapshot.sku_index("SKU-1")).bin_code == "B-01"


async def test_sku_bin_affinity(session, seed, snapshot, inventory_client):
    service = PutawayService(session, PutawayConfig(enforce_sku_bin_affinity=True), inventory_client)
    grn_id, _ = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")
    await seed.bin("B-01")

    await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")
    result = await service.confirm_putaway("SKU-1", grn_id, 2, "B-01", "picker-7")

    assert result.code == "BIN_CONFLICT"
    assert result.details["existing_bin_code"] == "A-01"
    assert (await snapshot.bin("B-01")).current_quantity == 0

    again = await service.confirm_putaway("SKU-1", grn_id, 2, "A-01", "picker-7")
    assert again.ok is True


async def test_single_sku_bins(session, seed, inventory_client):
    service = PutawayService(session, PutawayConfig(enforce_single_sku_bin=True), inventory_client)
    await seed.product("SKU-1")
    await seed.product("SKU-2")
    grn = await seed.grn(
        {"sku": "SKU-1", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 5},
        {"sku": "SKU-2", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 5},
    )
    grn_id = grn.id
    await seed.bin("A-01")

    assert (await service.confirm_putaway("SKU-1", grn_id, 2, "A-01", "picker-7")).ok is True
    result = await service.confirm_putaway("SKU-2", grn_id, 2, "A-01", "picker-7")

    assert result.code == "BIN_CONFLICT"
    assert result.details["skus"] == ["SKU-1"]


# ==================== SCAN / QUEUE ====================

async def test_scan_product_suggests_bin_by_category(service, seed, snapshot):
    await seed.product("SKU-1", category="Electronics", ean_upc="8901234567890")
    grn = await seed.grn({"sku": "SKU-1", "ordered_qty": 10, "received_qty": 10, "qc_pass_qty": 10})
    await seed.bin("G-01", current=0)
    await seed.bin("E-01", current=40, preferred_category="electronics")

    scan = await service.scan_product("8901234567890", grn.id, "picker-7")

    assert scan.product.sku == "SKU-1"
    assert scan.bin.bin_code == "E-01"
    assert scan.bin_source == "suggested"
    assert scan.match_type == MatchType.EXACT_PREFERRED
    assert scan.bin_error is None
    assert await snapshot.audit_actions("SKU-1") == [PutawayAction.SCAN_PRODUCT.value]


async def test_scan_product_returns_known_bin(service, seed):
    grn_id, _ = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01", current=90)
    await seed.bin("B-01", preferred_category="electronics")
    await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    scan = await service.scan_product("SKU-1", grn_id, "picker-7")

    assert scan.bin.bin_code == "A-01"
    assert scan.bin_source == "existing"
    assert scan.match_type is None


async def test_scan_product_reports_missing_bins(service, seed):
    grn_id, _ = await receive(seed, received=10, qc_pass=10)

    scan = await service.scan_product("SKU-1", grn_id, "picker-7")

    assert scan.bin is None
    assert scan.bin_error.code == "NO_SUITABLE_BIN"
    assert scan.bin_error.reason == "no_active_bins"


async def test_scan_product_rejections(service, seed):
    grn_id, _ = await receive(seed, received=5, qc_pass=5)
    await seed.bin("A-01")

    with pytest.raises(NotFoundError):
        await service.scan_product("UNKNOWN", grn_id, "picker-7")

    await service.confirm_putaway("SKU-1", grn_id, 5, "A-01", "picker-7")
    with pytest.raises(AlreadyCompleteError):
        await service.scan_product("SKU-1", grn_id, "picker-7")


async def test_scan_product_without_qc_passed_stock(service, seed):
    grn_id, _ = await receive(seed, received=5, qc_pass=0)

    with pytest.raises(InsufficientQuantityError):
        await service.scan_product("SKU-1", grn_id, "picker-7")


async def test_scan_bin_lists_contents(service, seed):
    grn_id, _ = await receive(seed, received=10, qc_pass=10)
    await seed.bin("A-01")
    await service.confirm_putaway("SKU-1", grn_id, 4, "A-01", "picker-7")

    bin, skus = await service.scan_bin("A-01", "picker-7")

    assert bin.current_quantity == 4
    assert skus == ["SKU-1"]

    with pytest.raises(NotFoundError):
        await service.scan_bin("Z-99", "picker-7")


async def test_putaway_queue(service, seed):
    await seed.product("SKU-1")
    await seed.product("SKU-2")
    await seed.product("SKU-3")
    grn = await seed.grn(
        {"sku": "SKU-1", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 5},
        {"sku": "SKU-2", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 0, "rtv_qty": 5},
        {"sku": "SKU-3", "ordered_qty": 5, "received_qty": 5, "qc_pass_qty": 3, "held_qty": 2},
    )
    grn_id = grn.id
    await seed.bin("A-01")
    await service.confirm_putaway("SKU-1", grn_id, 5, "A-01", "picker-7")

    lines, total = await service.putaway_queue(grn_id=grn_id)

    assert total == 1
    assert [line.sku for line in lines] == ["SKU-3"]
