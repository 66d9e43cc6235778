"""Pydantic schemas for goods receipt notes and receipt lines."""
from datetime import datetime
from typing import Optional, List
import uuid

from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


# ==================== GRN LINE SCHEMAS ====================

class GRNLineCreate(BaseCreateSchema):
    """
    Receipt line as recorded at the dock.

    qc_fail_qty is not accepted; it is always held_qty + rtv_qty.
    """
    sku: str = Field(..., min_length=1, max_length=50)
    ordered_qty: int = 0
    received_qty: int = 0
    qc_pass_qty: Optional[int] = None
    held_qty: int = 0
    rtv_qty: int = 0
    rejected_qty: int = 0
    remarks: Optional[str] = None


class GRNLineUpdate(BaseUpdateSchema):
    """Line edit; quantities are frozen once putaway starts."""
    ordered_qty: Optional[int] = None
    received_qty: Optional[int] = None
    qc_pass_qty: Optional[int] = None
    held_qty: Optional[int] = None
    rtv_qty: Optional[int] = None
    rejected_qty: Optional[int] = None
    remarks: Optional[str] = None


class GRNLineResponse(BaseResponseSchema):
    """Receipt line response schema."""
    id: uuid.UUID
    grn_id: uuid.UUID
    sku: str
    ordered_qty: int
    received_qty: int
    pending_qty: int
    rejected_qty: int
    qc_pass_qty: int
    qc_fail_qty: int
    held_qty: int
    rtv_qty: int
    putaway_qty: int
    line_status: str
    putaway_status: str
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ==================== GRN SCHEMAS ====================

class GRNCreate(BaseCreateSchema):
    """GRN creation schema; grn_number is generated when omitted."""
    grn_number: Optional[str] = Field(None, max_length=30)
    po_number: Optional[str] = Field(None, max_length=50)
    vendor_name: Optional[str] = Field(None, max_length=200)
    received_by: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None
    lines: List[GRNLineCreate] = Field(default_factory=list)


class GRNResponse(BaseResponseSchema):
    """GRN response schema with lines."""
    id: uuid.UUID
    grn_number: str
    po_number: Optional[str] = None
    vendor_name: Optional[str] = None
    status: str
    received_by: Optional[str] = None
    remarks: Optional[str] = None
    lines: List[GRNLineResponse] = []
    created_at: datetime
    updated_at: datetime
