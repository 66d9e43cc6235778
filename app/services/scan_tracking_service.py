"""
Scan tracking store.

Maintains the two denormalized scan indexes written on every putaway:
bin -> set of SKUs, and SKU -> last bin plus cumulative quantity.
Both are upserts. A first insert that loses a unique-key race against a
concurrent writer is retried by re-reading the winner's row and merging
into it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import PutawayConfig
from app.core.exceptions import TransientConflictError
from app.models.scan_tracking import ScanBinIndex, ScanSkuIndex


logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")


# ==================== MERGE RULES ====================

def merge_bin_skus(existing: Optional[Iterable[str]], sku: str) -> List[str]:
    """Set-union of a bin's SKU list with one SKU, keeping first-seen order."""
    merged: List[str] = []
    for value in list(existing or []) + [sku]:
        if value not in merged:
            merged.append(value)
    return merged


@dataclass(frozen=True)
class SkuPlacement:
    sku: str
    bin_code: str
    quantity: int


def merge_sku_placement(
    current: Optional[SkuPlacement],
    sku: str,
    bin_code: str,
    quantity: int,
) -> SkuPlacement:
    """Quantities add up; the latest bin wins."""
    if current is None:
        return SkuPlacement(sku=sku, bin_code=bin_code, quantity=quantity)
    return SkuPlacement(
        sku=current.sku,
        bin_code=bin_code,
        quantity=current.quantity + quantity,
    )


# ==================== STORE ====================

class ScanTrackingStore:
    """Upserts and lookups for the scan indexes, inside the caller's transaction."""

    def __init__(self, db: AsyncSession, config: Optional[PutawayConfig] = None):
        self.db = db
        self.config = config or PutawayConfig()

    async def get_bin_index(self, bin_code: str, for_update: bool = False) -> Optional[ScanBinIndex]:
        stmt = select(ScanBinIndex).where(ScanBinIndex.bin_code == bin_code)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_sku_index(self, scan_id: str, for_update: bool = False) -> Optional[ScanSkuIndex]:
        stmt = select(ScanSkuIndex).where(ScanSkuIndex.scan_id == scan_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_bin_skus(self, bin_code: str) -> List[str]:
        """SKUs recorded in a bin, empty if the bin was never used."""
        row = await self.get_bin_index(bin_code)
        return list(row.skus or []) if row else []

    async def find_bin_for_sku(self, sku: str) -> Optional[str]:
        """Bin of the most recently updated placement of this SKU."""
        stmt = (
            select(ScanSkuIndex.bin_code)
            .where(ScanSkuIndex.sku == sku)
            .order_by(ScanSkuIndex.updated_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_bin_sku(self, bin_code: str, sku: str) -> ScanBinIndex:
        """Add sku to the bin's SKU set; re-adding is a no-op."""

        def apply(row: ScanBinIndex) -> None:
            merged = merge_bin_skus(row.skus, sku)
            if merged != list(row.skus or []):
                row.skus = merged

        return await self._upsert(
            key=f"bin:{bin_code}",
            load=lambda: self.get_bin_index(bin_code, for_update=True),
            create=lambda: ScanBinIndex(bin_code=bin_code, skus=[sku]),
            apply=apply,
        )

    async def upsert_sku_placement(
        self,
        sku: str,
        bin_code: str,
        quantity: int,
        scan_id: Optional[str] = None,
    ) -> ScanSkuIndex:
        """Add quantity to the SKU's running total and record bin_code as its last bin."""
        key = scan_id or sku

        def apply(row: ScanSkuIndex) -> None:
            merged = merge_sku_placement(
                SkuPlacement(sku=row.sku, bin_code=row.bin_code, quantity=row.quantity),
                sku,
                bin_code,
                quantity,
            )
            row.bin_code = merged.bin_code
            row.quantity = merged.quantity
            row.updated_at = datetime.now(timezone.utc)

        def create() -> ScanSkuIndex:
            placement = merge_sku_placement(None, sku, bin_code, quantity)
            return ScanSkuIndex(
                scan_id=key,
                sku=placement.sku,
                bin_code=placement.bin_code,
                quantity=placement.quantity,
                updated_at=datetime.now(timezone.utc),
            )

        return await self._upsert(
            key=f"sku:{key}",
            load=lambda: self.get_sku_index(key, for_update=True),
            create=create,
            apply=apply,
        )

    async def _upsert(
        self,
        key: str,
        load: Callable[[], Awaitable[Optional[RowT]]],
        create: Callable[[], RowT],
        apply: Callable[[RowT], None],
    ) -> RowT:
        """
        Read-modify-write with retry on a lost first-insert race.

        The insert runs in a SAVEPOINT so a unique violation only discards the
        insert, not the caller's transaction.

        Raises:
            TransientConflictError: the insert kept conflicting after the
                configured number of retries
        """
        await self.db.flush()

        attempts = self.config.scan_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            row = await load()
            if row is not None:
                apply(row)
                await self.db.flush()
                return row

            try:
                async with self.db.begin_nested():
                    row = create()
                    self.db.add(row)
                return row
            except IntegrityError:
                logger.warning(
                    "Scan index insert conflict for %s (attempt %d of %d)",
                    key, attempt, attempts,
                )

        logger.error("Scan index conflict for %s not resolved after %d attempts", key, attempts)
        raise TransientConflictError(
            "concurrent scan index update, please retry",
            {"key": key, "attempts": attempts},
        )
