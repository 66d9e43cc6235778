"""Denormalized scan indexes: which SKUs sit in a bin, and where a SKU was last put."""
import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import JSONType, UUIDType


class ScanBinIndex(Base):
    """
    One row per bin code.
    skus is a JSON list treated as a set; writers always assign a new list.
    """
    __tablename__ = "scan_bin_index"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    bin_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    skus: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)

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

    def __repr__(self) -> str:
        return f"<ScanBinIndex(bin='{self.bin_code}', skus={len(self.skus or [])})>"


class ScanSkuIndex(Base):
    """
    One row per scan id (the SKU unless a caller supplies another key).
    quantity is the cumulative putaway quantity; bin_code is the last bin used.
    """
    __tablename__ = "scan_sku_index"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    scan_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    sku: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    bin_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<ScanSkuIndex(sku='{self.sku}', bin='{self.bin_code}', qty={self.quantity})>"
