from typing import Optional, List
import uuid
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.putaway import PutawayAuditEntry, PutawayAction


class PutawayAuditService:
    """
    Audit trail for scanner putaway actions.

    Entries are only ever added, inside the caller's transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: PutawayAction,
        performed_by: str,
        sku: Optional[str] = None,
        quantity: Optional[int] = None,
        grn_id: Optional[uuid.UUID] = None,
        grn_line_id: Optional[uuid.UUID] = None,
        from_bin_code: Optional[str] = None,
        to_bin_code: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> PutawayAuditEntry:
        """
        Create a putaway audit entry.

        Args:
            action: The scanner action performed
            performed_by: Actor passed in by the caller
            sku: SKU involved, if any
            quantity: Quantity placed or scanned
            grn_id: GRN the action belongs to
            grn_line_id: Receipt line the action belongs to
            from_bin_code: Previous bin (override_bin)
            to_bin_code: Destination or scanned bin
            remarks: Free-text note

        Returns:
            The created PutawayAuditEntry
        """
        entry = PutawayAuditEntry(
            action=action.value,
            performed_by=performed_by,
            sku=sku,
            quantity=quantity,
            grn_id=grn_id,
            grn_line_id=grn_line_id,
            from_bin_code=from_bin_code,
            to_bin_code=to_bin_code,
            remarks=remarks,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def log_bin_override(
        self,
        performed_by: str,
        sku: str,
        from_bin_code: str,
        to_bin_code: str,
        grn_id: Optional[uuid.UUID] = None,
        grn_line_id: Optional[uuid.UUID] = None,
    ) -> PutawayAuditEntry:
        """Log a SKU being put into a different bin than the one it was tracked in."""
        return await self.log(
            action=PutawayAction.OVERRIDE_BIN,
            performed_by=performed_by,
            sku=sku,
            grn_id=grn_id,
            grn_line_id=grn_line_id,
            from_bin_code=from_bin_code,
            to_bin_code=to_bin_code,
            remarks=f"SKU moved from {from_bin_code} to {to_bin_code}",
        )

    async def get_entries(
        self,
        sku: Optional[str] = None,
        grn_id: Optional[uuid.UUID] = None,
        action: Optional[PutawayAction] = None,
        performed_by: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[PutawayAuditEntry], int]:
        """
        Get audit entries with filtering, newest first.
        """
        stmt = select(PutawayAuditEntry).order_by(PutawayAuditEntry.performed_at.desc())

        if sku:
            stmt = stmt.where(PutawayAuditEntry.sku == sku)
        if grn_id:
            stmt = stmt.where(PutawayAuditEntry.grn_id == grn_id)
        if action:
            stmt = stmt.where(PutawayAuditEntry.action == action.value)
        if performed_by:
            stmt = stmt.where(PutawayAuditEntry.performed_by == performed_by)
        if start_date:
            stmt = stmt.where(PutawayAuditEntry.performed_at >= start_date)
        if end_date:
            stmt = stmt.where(PutawayAuditEntry.performed_at <= end_date)

        # Count total
        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar()

        # Get paginated results
        stmt = stmt.offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        entries = result.scalars().all()

        return list(entries), total
