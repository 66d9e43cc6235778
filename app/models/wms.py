"""WMS (Warehouse Management System) models for bin and capacity management."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import JSONType, UUIDType


class BinStatus(str, Enum):
    """Bin lifecycle status."""
    ACTIVE = "active"
    INACTIVE = "inactive"          # Reactivated on the next putaway
    MAINTENANCE = "maintenance"    # Never accepts stock


class BinType(str, Enum):
    """Bin/Storage location type enumeration."""
    SHELF = "SHELF"              # Standard shelf location
    RACK = "RACK"                # Pallet rack
    FLOOR = "FLOOR"              # Floor storage
    PALLET = "PALLET"            # Pallet location
    CONTAINER = "CONTAINER"      # Storage container
    BULK = "BULK"                # Bulk storage


class WarehouseBin(Base):
    """
    Warehouse Bin/Storage Location model.
    Capacity and occupancy are unit counts.
    """
    __tablename__ = "warehouse_bins"
    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_bin_current_non_negative"),
        CheckConstraint("current_quantity <= capacity", name="ck_bin_within_capacity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Bin identification
    bin_code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Bin code e.g., A1-B2-C3, RACK-01-SHELF-02"
    )
    bin_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Location breakdown
    zone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    aisle: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    rack: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    shelf: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Bin type
    bin_type: Mapped[str] = mapped_column(
        String(50),
        default=BinType.SHELF.value,
        nullable=False,
        comment="SHELF, RACK, FLOOR, PALLET, CONTAINER, BULK"
    )

    # Capacity
    capacity: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Maximum items/units"
    )
    current_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        default=BinStatus.ACTIVE.value,
        nullable=False,
        index=True,
        comment="active, inactive, maintenance"
    )

    # Category preferences used by bin suggestion
    preferred_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category_mapping: Mapped[Optional[List[str]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Additional categories accepted by this bin"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_empty(self) -> bool:
        """Check if bin is empty."""
        return self.current_quantity == 0

    @property
    def is_full(self) -> bool:
        """Check if bin is at capacity."""
        return self.current_quantity >= self.capacity

    @property
    def available_capacity(self) -> int:
        """Get remaining capacity."""
        return max(self.capacity - self.current_quantity, 0)

    @property
    def utilization_percent(self) -> float:
        """Calculate bin utilization percentage."""
        if self.capacity > 0:
            return round((self.current_quantity / self.capacity) * 100, 2)
        return 0.0

    def __repr__(self) -> str:
        return f"<WarehouseBin(code='{self.bin_code}', qty={self.current_quantity}/{self.capacity})>"
