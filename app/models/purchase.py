"""Goods receipt models: GRN header and per-SKU receipt lines."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType


class GRNStatus(str, Enum):
    """Goods Receipt Note status."""
    DRAFT = "DRAFT"
    PUT_AWAY_PENDING = "PUT_AWAY_PENDING"
    PUT_AWAY_COMPLETE = "PUT_AWAY_COMPLETE"


class LineStatus(str, Enum):
    """Receipt progress of a line against the ordered quantity."""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


class PutawayStatus(str, Enum):
    """Putaway progress of a line. Derived, never set by callers."""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


class GoodsReceiptNote(Base):
    """
    Goods Receipt Note model.
    Records material received against a PO.
    """
    __tablename__ = "goods_receipt_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    grn_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="GRN-YYYYMMDD-XXXX"
    )
    po_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    vendor_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default=GRNStatus.DRAFT.value,
        nullable=False,
        index=True,
        comment="DRAFT, PUT_AWAY_PENDING, PUT_AWAY_COMPLETE"
    )

    received_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    # Relationships
    lines: Mapped[List["GRNLine"]] = relationship(
        "GRNLine",
        back_populates="grn",
        cascade="all, delete-orphan",
        order_by="GRNLine.created_at"
    )

    def __repr__(self) -> str:
        return f"<GoodsReceiptNote(number='{self.grn_number}', status='{self.status}')>"


class GRNLine(Base):
    """
    Receipt line for one SKU within a GRN.

    qc_pass_qty is the quantity still available to place in a bin; putaway
    consumes it. qc_pass_qty + qc_fail_qty == received_qty holds when the line
    is recorded.
    """
    __tablename__ = "grn_lines"
    __table_args__ = (
        UniqueConstraint("grn_id", "sku", name="uq_grn_line_sku"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    grn_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("goods_receipt_notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # Quantities
    ordered_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    received_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pending_qty: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="ordered_qty - received_qty"
    )
    rejected_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    qc_pass_qty: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Remaining quantity available for putaway"
    )
    qc_fail_qty: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="held_qty + rtv_qty"
    )
    held_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rtv_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    putaway_qty: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Cumulative quantity placed in bins"
    )

    # Status
    line_status: Mapped[str] = mapped_column(
        String(20),
        default=LineStatus.PENDING.value,
        nullable=False,
        comment="pending, partial, completed"
    )
    putaway_status: Mapped[str] = mapped_column(
        String(20),
        default=PutawayStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, partial, completed"
    )

    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    # Relationships
    grn: Mapped["GoodsReceiptNote"] = relationship("GoodsReceiptNote", back_populates="lines")

    @property
    def is_putaway_complete(self) -> bool:
        return self.putaway_status == PutawayStatus.COMPLETED.value

    def __repr__(self) -> str:
        return (
            f"<GRNLine(sku='{self.sku}', received={self.received_qty}, "
            f"qc_pass={self.qc_pass_qty}, putaway='{self.putaway_status}')>"
        )
