"""Service for Warehouse Management System bin operations."""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import PutawayConfig
from app.core.exceptions import (
    NotFoundError,
    ValidationError,
    InvalidBinStateError,
    CapacityExceededError,
)
from app.models.wms import WarehouseBin, BinStatus, BinType
from app.schemas.wms import BinCreate, BinUpdate
from app.services.bin_allocator import BinAllocator, BinSuggestion
from app.services.product_service import ProductService
from app.services.scan_tracking_service import ScanTrackingStore


logger = logging.getLogger(__name__)


class WMSService:
    """Service for WMS bin management, bin suggestion and bin resolution."""

    def __init__(
        self,
        db: AsyncSession,
        config: Optional[PutawayConfig] = None,
        allocator: Optional[BinAllocator] = None,
    ):
        self.db = db
        self.config = config or PutawayConfig()
        self.allocator = allocator or BinAllocator()

    # ==================== BIN MANAGEMENT ====================

    async def get_bin_by_code(
        self,
        bin_code: str,
        for_update: bool = False
    ) -> Optional[WarehouseBin]:
        """Get bin by code."""
        stmt = select(WarehouseBin).where(WarehouseBin.bin_code == bin_code)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_bins(
        self,
        zone: Optional[str] = None,
        bin_type: Optional[BinType] = None,
        status: Optional[BinStatus] = None,
        category: Optional[str] = None,
        only_available: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[WarehouseBin], int]:
        """Get bins with filters."""
        stmt = select(WarehouseBin).order_by(WarehouseBin.bin_code)

        filters = []
        if zone:
            filters.append(WarehouseBin.zone == zone)
        if bin_type:
            filters.append(WarehouseBin.bin_type == bin_type.value)
        if status:
            filters.append(WarehouseBin.status == status.value)
        if category:
            filters.append(func.lower(WarehouseBin.preferred_category) == category.strip().lower())
        if only_available:
            filters.append(WarehouseBin.current_quantity < WarehouseBin.capacity)

        if filters:
            stmt = stmt.where(and_(*filters))

        # Count
        count_stmt = select(func.count(WarehouseBin.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        # Paginate
        stmt = stmt.offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        items = list(result.scalars().all())

        return items, total

    async def create_bin(self, data: BinCreate) -> WarehouseBin:
        """Create warehouse bin."""
        existing = await self.get_bin_by_code(data.bin_code)
        if existing:
            raise ValueError(f"Bin code {data.bin_code} already exists")

        bin = WarehouseBin(**data.model_dump(mode="json"))
        self.db.add(bin)
        await self.db.commit()
        await self.db.refresh(bin)
        return bin

    async def update_bin(
        self,
        bin_code: str,
        data: BinUpdate
    ) -> WarehouseBin:
        """Update warehouse bin."""
        bin = await self.get_bin_by_code(bin_code)
        if not bin:
            raise NotFoundError(f"Bin {bin_code} not found", {"bin_code": bin_code})

        update_data = data.model_dump(mode="json", exclude_unset=True)
        new_capacity = update_data.get("capacity")
        if new_capacity is not None and new_capacity < bin.current_quantity:
            raise ValidationError(
                "capacity cannot be lower than current quantity",
                {"capacity": new_capacity, "current_quantity": bin.current_quantity},
            )

        for key, value in update_data.items():
            setattr(bin, key, value)

        await self.db.commit()
        await self.db.refresh(bin)
        return bin

    # ==================== BIN ENQUIRY ====================

    async def get_bin_contents(
        self,
        bin_code: str
    ) -> Tuple[WarehouseBin, List[str]]:
        """Get bin with the SKUs putaway has recorded in it."""
        bin = await self.get_bin_by_code(bin_code)
        if not bin:
            raise NotFoundError(f"Bin {bin_code} not found", {"bin_code": bin_code})

        skus = await ScanTrackingStore(self.db, self.config).get_bin_skus(bin_code)
        return bin, skus

    # ==================== PUTAWAY SUGGESTION ====================

    async def get_candidate_bins(self) -> List[WarehouseBin]:
        """Active bins, sparsest first, bounded by the configured candidate limit."""
        stmt = (
            select(WarehouseBin)
            .where(WarehouseBin.status == BinStatus.ACTIVE.value)
            .order_by(WarehouseBin.current_quantity.asc(), WarehouseBin.capacity.desc())
            .limit(self.config.candidate_limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def suggest_bin(
        self,
        category: Optional[str] = None,
        sku: Optional[str] = None,
        required_qty: int = 1
    ) -> Tuple[BinSuggestion, str]:
        """
        Suggest a bin for a category, or for the category of a SKU.

        Returns the suggestion and the category it was made for.
        """
        if sku and not category:
            product = await ProductService(self.db).get_product_by_sku(sku)
            if not product:
                raise NotFoundError(f"Product {sku} not found", {"sku": sku})
            category = product.category

        candidates = await self.get_candidate_bins()
        suggestion = self.allocator.suggest_bin(category, required_qty, candidates)
        logger.debug(
            "Suggested bin %s (%s) for category %s",
            suggestion.bin.bin_code, suggestion.match_type.value, category,
        )
        return suggestion, (category or "").strip().lower()

    async def resolve_bin(
        self,
        bin_code: str,
        requested_qty: int,
        for_update: bool = True
    ) -> WarehouseBin:
        """
        Resolve a scanned bin code for a putaway of requested_qty units.

        An inactive bin is switched back to active; bins under maintenance
        never accept stock.
        """
        bin = await self.get_bin_by_code(bin_code, for_update=for_update)
        if not bin:
            raise NotFoundError(f"Bin {bin_code} not found", {"bin_code": bin_code})

        if bin.status == BinStatus.MAINTENANCE.value:
            raise InvalidBinStateError(
                f"Bin {bin_code} is under maintenance",
                {"bin_code": bin_code, "status": bin.status},
            )

        if bin.current_quantity + requested_qty > bin.capacity:
            raise CapacityExceededError(
                f"Bin {bin_code} cannot take {requested_qty} more units",
                {
                    "bin_code": bin_code,
                    "capacity": bin.capacity,
                    "current_quantity": bin.current_quantity,
                    "requested_qty": requested_qty,
                },
            )

        if bin.status == BinStatus.INACTIVE.value:
            logger.info("Reactivating bin %s for putaway", bin_code)
            bin.status = BinStatus.ACTIVE.value

        return bin
