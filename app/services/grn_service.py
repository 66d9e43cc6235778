"""GRN Service for recording receipts and maintaining receipt lines.

Flow:
1. GRN created with its lines → quantities validated by the quantity ledger
2. Lines edited or removed while putaway has not started
3. Putaway consumes QC-passed stock → GRN status rolls up to PUT_AWAY_COMPLETE
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError, ValidationError
from app.models.purchase import GoodsReceiptNote, GRNLine, GRNStatus, PutawayStatus
from app.schemas.grn import GRNCreate, GRNLineCreate, GRNLineUpdate
from app.services import quantity_ledger


logger = logging.getLogger(__name__)


def derive_grn_status(lines: Iterable[GRNLine]) -> GRNStatus:
    """GRN status from its lines' remaining putaway stock."""
    lines = list(lines)
    if any(line.qc_pass_qty > 0 for line in lines):
        return GRNStatus.PUT_AWAY_PENDING
    if any(line.putaway_qty > 0 for line in lines):
        return GRNStatus.PUT_AWAY_COMPLETE
    return GRNStatus.DRAFT


class GRNService:
    """Service for GRN operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== GRN ====================

    async def get_grn(self, grn_id: uuid.UUID) -> GoodsReceiptNote:
        """Get GRN with lines."""
        stmt = (
            select(GoodsReceiptNote)
            .options(selectinload(GoodsReceiptNote.lines))
            .where(GoodsReceiptNote.id == grn_id)
            .execution_options(populate_existing=True)
        )
        grn = (await self.db.execute(stmt)).scalar_one_or_none()
        if not grn:
            raise NotFoundError(f"GRN {grn_id} not found", {"grn_id": str(grn_id)})
        return grn

    async def create_grn(self, data: GRNCreate) -> GoodsReceiptNote:
        """Create a GRN and record its lines."""
        grn_number = data.grn_number or await self._generate_grn_number()

        stmt = select(GoodsReceiptNote.id).where(GoodsReceiptNote.grn_number == grn_number)
        if (await self.db.execute(stmt)).scalar_one_or_none():
            raise ValueError(f"GRN {grn_number} already exists")

        skus = [line.sku for line in data.lines]
        duplicates = sorted({sku for sku in skus if skus.count(sku) > 1})
        if duplicates:
            raise ValidationError("duplicate SKUs on GRN", {"skus": duplicates})

        lines = [self._record_line(line_data) for line_data in data.lines]

        grn = GoodsReceiptNote(
            grn_number=grn_number,
            po_number=data.po_number,
            vendor_name=data.vendor_name,
            received_by=data.received_by,
            remarks=data.remarks,
            status=derive_grn_status(lines).value,
            lines=lines,
        )
        self.db.add(grn)
        await self.db.commit()

        logger.info("GRN %s recorded with %d lines", grn_number, len(lines))
        return await self.get_grn(grn.id)

    async def _generate_grn_number(self) -> str:
        """Generate GRN-YYYYMMDD-XXXX."""
        now = datetime.now(timezone.utc)
        prefix = f"GRN-{now.strftime('%Y%m%d')}"

        query = select(func.max(GoodsReceiptNote.grn_number)).where(
            GoodsReceiptNote.grn_number.like(f"{prefix}%")
        )
        result = await self.db.scalar(query)

        if result:
            try:
                seq = int(result.split("-")[-1]) + 1
            except (ValueError, IndexError):
                seq = 1
        else:
            seq = 1

        return f"{prefix}-{seq:04d}"

    # ==================== LINES ====================

    def _record_line(self, data: GRNLineCreate) -> GRNLine:
        return quantity_ledger.record_receipt(
            sku=data.sku,
            ordered_qty=data.ordered_qty,
            received_qty=data.received_qty,
            qc_pass_qty=data.qc_pass_qty,
            held_qty=data.held_qty,
            rtv_qty=data.rtv_qty,
            rejected_qty=data.rejected_qty,
            remarks=data.remarks,
        )

    async def get_line(self, line_id: uuid.UUID, for_update: bool = False) -> GRNLine:
        stmt = select(GRNLine).where(GRNLine.id == line_id)
        if for_update:
            stmt = stmt.with_for_update()
        line = (await self.db.execute(stmt)).scalar_one_or_none()
        if not line:
            raise NotFoundError(f"GRN line {line_id} not found", {"line_id": str(line_id)})
        return line

    async def add_line(self, grn_id: uuid.UUID, data: GRNLineCreate) -> GRNLine:
        """Record an additional receipt line on an existing GRN."""
        grn = await self.get_grn(grn_id)
        if any(line.sku == data.sku for line in grn.lines):
            raise ValidationError(
                f"SKU {data.sku} already recorded on this GRN",
                {"sku": data.sku, "grn_id": str(grn_id)},
            )

        line = self._record_line(data)
        grn.lines.append(line)
        grn.status = derive_grn_status(grn.lines).value
        await self.db.commit()
        await self.db.refresh(line)
        return line

    async def update_line(self, line_id: uuid.UUID, data: GRNLineUpdate) -> GRNLine:
        """Edit a receipt line; quantities are frozen once putaway starts."""
        line = await self.get_line(line_id, for_update=True)
        quantity_ledger.validate_line_update(line, data.model_dump(exclude_unset=True))
        await self.db.flush()

        grn = await self.get_grn(line.grn_id)
        grn.status = derive_grn_status(grn.lines).value
        await self.db.commit()
        await self.db.refresh(line)
        return line

    async def delete_line(self, line_id: uuid.UUID) -> None:
        """Remove a receipt line that has not been put away."""
        line = await self.get_line(line_id, for_update=True)
        if line.putaway_qty > 0 or line.putaway_status != PutawayStatus.PENDING.value:
            raise ValidationError(
                "cannot delete a line after putaway has started",
                {"line_id": str(line_id), "putaway_status": line.putaway_status},
            )

        grn_id = line.grn_id
        await self.db.delete(line)
        await self.db.flush()

        grn = await self.get_grn(grn_id)
        grn.status = derive_grn_status(grn.lines).value
        await self.db.commit()
        logger.info("Deleted GRN line %s from GRN %s", line_id, grn_id)
