"""
Putaway transaction coordinator.

Confirms that QC-passed stock of a GRN line was placed in a bin. One
confirmation is one database transaction covering the receipt line, the
bin occupancy, both scan indexes, the audit trail and the GRN status.
The inventory ledger is notified only after that transaction commits.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import PutawayConfig
from app.core.exceptions import (
    PutawayError,
    NotFoundError,
    ValidationError,
    AlreadyCompleteError,
    InsufficientQuantityError,
    BinConflictError,
    PersistenceError,
)
from app.models.purchase import GoodsReceiptNote, GRNLine, GRNStatus, PutawayStatus
from app.models.product import Product
from app.models.putaway import PutawayAction
from app.models.wms import WarehouseBin
from app.services import quantity_ledger
from app.services.audit_service import PutawayAuditService
from app.services.bin_allocator import MatchType
from app.services.grn_service import derive_grn_status
from app.services.inventory_sync import (
    InventorySyncClient,
    InventorySyncError,
    InventoryUpdate,
    InventoryOperation,
)
from app.services.product_service import ProductService
from app.services.scan_tracking_service import ScanTrackingStore
from app.services.wms_service import WMSService


logger = logging.getLogger(__name__)


# ==================== RESULTS ====================

@dataclass
class PutawayCommitted:
    """Putaway durably committed; a sync warning does not undo it."""
    status: PutawayStatus
    remaining_qty: int
    bin_code: str
    bin_current: int
    bin_capacity: int
    grn_id: uuid.UUID
    grn_line_id: uuid.UUID
    grn_status: str
    sku: str
    quantity: int
    inventory_sync_warning: Optional[str] = None
    ok: bool = field(default=True, init=False)


@dataclass
class PutawayRejected:
    """Nothing was written."""
    code: str
    message: str
    status_code: int
    details: Dict[str, Any] = field(default_factory=dict)
    ok: bool = field(default=False, init=False)

    @classmethod
    def from_error(cls, error: PutawayError) -> "PutawayRejected":
        return cls(
            code=error.code,
            message=error.message,
            status_code=error.status_code,
            details=error.details,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


PutawayResult = Union[PutawayCommitted, PutawayRejected]


@dataclass
class ProductScan:
    """Outcome of scanning a product against a GRN."""
    product: Product
    line: GRNLine
    bin: Optional[WarehouseBin] = None
    bin_source: Optional[str] = None
    match_type: Optional[MatchType] = None
    bin_error: Optional[PutawayError] = None


def putaway_reference(grn_id: uuid.UUID) -> str:
    return f"PUTAWAY-GRN-{grn_id}"


# ==================== COORDINATOR ====================

class PutawayService:
    """
    Scanner putaway flow: scan product, scan bin, confirm quantity.

    Usage:
        service = PutawayService(db, PutawayConfig.from_settings(settings), client)
        result = await service.confirm_putaway(sku, grn_id, 10, "A-01", "picker-7")
    """

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[PutawayConfig] = None,
        inventory_client: Optional[InventorySyncClient] = None,
    ):
        self.db = db
        self.config = config or PutawayConfig()
        self.inventory_client = inventory_client or InventorySyncClient(enabled=False)
        self.wms = WMSService(db, self.config)
        self.scans = ScanTrackingStore(db, self.config)
        self.audit = PutawayAuditService(db)

    async def get_line(
        self,
        grn_id: uuid.UUID,
        sku: str,
        for_update: bool = False
    ) -> Optional[GRNLine]:
        """Get the receipt line for a SKU on a GRN."""
        stmt = select(GRNLine).where(GRNLine.grn_id == grn_id, GRNLine.sku == sku)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== CONFIRM ====================

    async def confirm_putaway(
        self,
        sku: str,
        grn_id: uuid.UUID,
        quantity: int,
        bin_code: str,
        actor: str,
        remarks: Optional[str] = None,
    ) -> PutawayResult:
        """
        Place quantity units of a GRN line's QC-passed stock into bin_code.

        Never raises for business or persistence failures; the result is
        either PutawayCommitted or PutawayRejected.
        """
        try:
            committed = await self._commit_putaway(sku, grn_id, quantity, bin_code, actor, remarks)
        except PutawayError as e:
            await self.db.rollback()
            logger.info("Putaway rejected for %s on GRN %s: %s (%s)", sku, grn_id, e.message, e.code)
            return PutawayRejected.from_error(e)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Putaway for %s on GRN %s rolled back", sku, grn_id)
            return PutawayRejected.from_error(
                PersistenceError("putaway could not be saved", {"reason": str(e.__class__.__name__)})
            )

        logger.info(
            "Putaway committed: %s x%d into %s (GRN %s, %s)",
            sku, quantity, bin_code, grn_id, committed.status.value,
        )
        committed.inventory_sync_warning = await self._publish_inventory_update(committed, actor, remarks)
        return committed

    async def _commit_putaway(
        self,
        sku: str,
        grn_id: uuid.UUID,
        quantity: int,
        bin_code: str,
        actor: str,
        remarks: Optional[str],
    ) -> PutawayCommitted:
        line = await self.get_line(grn_id, sku, for_update=True)
        if not line:
            raise NotFoundError(
                f"No receipt line for SKU {sku} on GRN {grn_id}",
                {"sku": sku, "grn_id": str(grn_id)},
            )
        if line.putaway_status == PutawayStatus.COMPLETED.value:
            raise AlreadyCompleteError(
                "putaway already completed for this line",
                {"line_id": str(line.id), "sku": sku},
            )
        if quantity <= 0:
            raise ValidationError("quantity must be positive", {"quantity": quantity})

        bin = await self.wms.resolve_bin(bin_code, quantity)

        # received > 0, quantity <= received, quantity <= qc_pass
        quantity_ledger.consume_for_putaway(line, quantity)

        previous_bin = await self._check_placement_policies(sku, bin_code)

        bin.current_quantity = bin.current_quantity + quantity
        bin.last_activity_at = datetime.now(timezone.utc)

        await self.scans.upsert_bin_sku(bin_code, sku)
        await self.scans.upsert_sku_placement(sku, bin_code, quantity)

        await self.audit.log(
            action=PutawayAction.CONFIRM_QUANTITY,
            performed_by=actor,
            sku=sku,
            quantity=quantity,
            grn_id=grn_id,
            grn_line_id=line.id,
            to_bin_code=bin_code,
            remarks=remarks,
        )
        if previous_bin:
            await self.audit.log_bin_override(
                performed_by=actor,
                sku=sku,
                from_bin_code=previous_bin,
                to_bin_code=bin_code,
                grn_id=grn_id,
                grn_line_id=line.id,
            )
        if line.putaway_status == PutawayStatus.COMPLETED.value:
            await self.audit.log(
                action=PutawayAction.COMPLETE_TASK,
                performed_by=actor,
                sku=sku,
                quantity=line.putaway_qty,
                grn_id=grn_id,
                grn_line_id=line.id,
                to_bin_code=bin_code,
            )

        grn_status = await self._roll_up_grn_status(grn_id)

        await self.db.commit()

        return PutawayCommitted(
            status=PutawayStatus(line.putaway_status),
            remaining_qty=line.qc_pass_qty,
            bin_code=bin.bin_code,
            bin_current=bin.current_quantity,
            bin_capacity=bin.capacity,
            grn_id=grn_id,
            grn_line_id=line.id,
            grn_status=grn_status,
            sku=sku,
            quantity=quantity,
        )

    async def _check_placement_policies(self, sku: str, bin_code: str) -> Optional[str]:
        """
        Apply the optional SKU/bin placement policies.

        Returns the bin the SKU was previously tracked in when it is being
        moved to a different one.
        """
        previous_bin = await self.scans.find_bin_for_sku(sku)
        moved = previous_bin is not None and previous_bin != bin_code

        if moved and self.config.enforce_sku_bin_affinity:
            raise BinConflictError(
                f"SKU {sku} is already placed in bin {previous_bin}",
                {"sku": sku, "existing_bin_code": previous_bin, "bin_code": bin_code},
            )

        if self.config.enforce_single_sku_bin:
            other_skus = [s for s in await self.scans.get_bin_skus(bin_code) if s != sku]
            if other_skus:
                raise BinConflictError(
                    f"Bin {bin_code} already holds other SKUs",
                    {"bin_code": bin_code, "skus": other_skus},
                )

        return previous_bin if moved else None

    async def _roll_up_grn_status(self, grn_id: uuid.UUID) -> str:
        """Move the GRN to PUT_AWAY_COMPLETE once no line has stock left to place."""
        await self.db.flush()
        stmt = (
            select(GoodsReceiptNote)
            .options(selectinload(GoodsReceiptNote.lines))
            .where(GoodsReceiptNote.id == grn_id)
        )
        grn = (await self.db.execute(stmt)).scalar_one()

        status = derive_grn_status(grn.lines)
        if status != GRNStatus(grn.status):
            logger.info("GRN %s status %s -> %s", grn.grn_number, grn.status, status.value)
            grn.status = status.value
        return grn.status

    async def _publish_inventory_update(
        self,
        committed: PutawayCommitted,
        actor: str,
        remarks: Optional[str],
    ) -> Optional[str]:
        update = InventoryUpdate(
            sku=committed.sku,
            operation=InventoryOperation.PUTAWAY,
            quantity=committed.quantity,
            reference_id=putaway_reference(committed.grn_id),
            performed_by=actor,
            operation_details={
                "grn_id": str(committed.grn_id),
                "grn_line_id": str(committed.grn_line_id),
                "bin_code": committed.bin_code,
                "putaway_status": committed.status.value,
                "remarks": remarks,
            },
        )
        try:
            await self.inventory_client.update_inventory(update)
        except InventorySyncError as e:
            logger.warning("Inventory sync failed for %s: %s", update.reference_id, e.message)
            return f"Inventory update failed: {e.message}"
        except Exception as e:
            logger.exception("Inventory sync raised unexpectedly for %s", update.reference_id)
            return f"Inventory update failed: {e}"
        return None

    # ==================== SCAN ====================

    async def scan_product(self, code: str, grn_id: uuid.UUID, actor: str) -> ProductScan:
        """
        Resolve a scanned SKU or EAN against a GRN and find where it goes.

        A SKU already tracked in a bin goes back to that bin; otherwise a bin
        is suggested from the product category. Bin lookup problems are
        reported on the result, not raised.
        """
        product = await ProductService(self.db).resolve_scanned_code(code)

        line = await self.get_line(grn_id, product.sku)
        if not line:
            raise NotFoundError(
                f"SKU {product.sku} is not on GRN {grn_id}",
                {"sku": product.sku, "grn_id": str(grn_id)},
            )
        quantity_ledger.check_rejection_state(line.received_qty, line.rejected_qty)
        if line.putaway_status == PutawayStatus.COMPLETED.value:
            raise AlreadyCompleteError(
                "putaway already completed for this line",
                {"line_id": str(line.id), "sku": product.sku},
            )
        if line.qc_pass_qty <= 0:
            raise InsufficientQuantityError(
                "no QC-passed quantity available for putaway",
                {"sku": product.sku, "qc_pass_qty": line.qc_pass_qty},
            )

        scan = ProductScan(product=product, line=line)

        known_bin_code = await self.scans.find_bin_for_sku(product.sku)
        if known_bin_code:
            scan.bin = await self.wms.get_bin_by_code(known_bin_code)
            scan.bin_source = "existing"
            if not scan.bin:
                scan.bin_error = NotFoundError(
                    f"Bin {known_bin_code} recorded for {product.sku} no longer exists",
                    {"bin_code": known_bin_code},
                )
        else:
            try:
                suggestion, _ = await self.wms.suggest_bin(
                    category=product.category,
                    required_qty=line.qc_pass_qty,
                )
            except PutawayError as e:
                scan.bin_error = e
            else:
                scan.bin = suggestion.bin
                scan.bin_source = "suggested"
                scan.match_type = suggestion.match_type

        await self.audit.log(
            action=PutawayAction.SCAN_PRODUCT,
            performed_by=actor,
            sku=product.sku,
            grn_id=grn_id,
            grn_line_id=line.id,
            to_bin_code=scan.bin.bin_code if scan.bin else None,
            remarks=f"Scanned {code}",
        )
        await self.db.commit()
        return scan

    async def scan_bin(self, bin_code: str, actor: str) -> Tuple[WarehouseBin, List[str]]:
        """Bin occupancy and the SKUs recorded in it."""
        bin, skus = await self.wms.get_bin_contents(bin_code)
        await self.audit.log(
            action=PutawayAction.SCAN_BIN,
            performed_by=actor,
            to_bin_code=bin_code,
        )
        await self.db.commit()
        return bin, skus

    # ==================== QUEUE ====================

    async def putaway_queue(
        self,
        grn_id: Optional[uuid.UUID] = None,
        sku: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[GRNLine], int]:
        """GRN lines that still have QC-passed stock waiting for a bin, oldest first."""
        filters = [
            GRNLine.qc_pass_qty > 0,
            GRNLine.putaway_status != PutawayStatus.COMPLETED.value,
        ]
        if grn_id:
            filters.append(GRNLine.grn_id == grn_id)
        if sku:
            filters.append(GRNLine.sku == sku)

        count_stmt = select(func.count(GRNLine.id)).where(*filters)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(GRNLine)
            .where(*filters)
            .order_by(GRNLine.created_at)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total
