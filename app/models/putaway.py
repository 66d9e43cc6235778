"""Append-only putaway audit trail."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class PutawayAction(str, Enum):
    """Audited scanner actions."""
    SCAN_PRODUCT = "scan_product"
    SCAN_BIN = "scan_bin"
    CONFIRM_QUANTITY = "confirm_quantity"
    COMPLETE_TASK = "complete_task"
    OVERRIDE_BIN = "override_bin"


class PutawayAuditEntry(Base):
    """
    Putaway audit entry.
    Rows are only ever inserted.
    """
    __tablename__ = "putaway_audit"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    action: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="scan_product, scan_bin, confirm_quantity, complete_task, override_bin"
    )
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False)

    sku: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # References kept as plain values so audit rows outlive the lines they describe
    grn_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True, index=True)
    grn_line_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)

    from_bin_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_bin_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<PutawayAuditEntry(action='{self.action}', sku='{self.sku}', by='{self.performed_by}')>"
