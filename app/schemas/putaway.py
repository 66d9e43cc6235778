"""Pydantic schemas for the scanner putaway flow."""
from datetime import datetime
from typing import Optional, List, Literal
import uuid

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponseSchema, PaginatedResponse
from app.services.bin_allocator import MatchType


# ==================== CONFIRM ====================

class PutawayConfirmRequest(BaseModel):
    """Confirm that a quantity of a GRN line was placed in a bin."""
    sku: str = Field(..., min_length=1, max_length=50)
    grn_id: uuid.UUID
    quantity: int
    bin_code: str = Field(..., min_length=1, max_length=50)
    performed_by: str = Field(..., min_length=1, max_length=100)
    remarks: Optional[str] = None


class BinOccupancy(BaseModel):
    code: str
    current: int
    capacity: int


class PutawayConfirmResponse(BaseModel):
    """Committed putaway."""
    status: Literal["completed", "partial"]
    remaining_qty: int
    bin_occupancy: BinOccupancy
    grn_line_id: uuid.UUID
    grn_status: str
    inventory_sync_warning: Optional[str] = None


# ==================== SCAN ====================

class ScanProductRequest(BaseModel):
    """Scanned SKU or EAN/UPC against a GRN."""
    code: str = Field(..., min_length=1, max_length=50)
    grn_id: uuid.UUID
    performed_by: str = Field(..., min_length=1, max_length=100)


class ScannedBin(BaseModel):
    bin_code: str
    source: Literal["existing", "suggested"]
    match_type: Optional[MatchType] = None
    zone: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    status: str
    capacity: int
    current_quantity: int
    available_capacity: int
    has_capacity: bool


class BinLookupError(BaseModel):
    code: str
    message: str
    reason: Optional[str] = None


class ScanProductResponse(BaseModel):
    """Product, line quantities and where to put it."""
    sku: str
    name: str
    category: Optional[str] = None
    grn_line_id: uuid.UUID
    received_qty: int
    qc_pass_qty: int
    putaway_qty: int
    putaway_status: str
    bin: Optional[ScannedBin] = None
    bin_error: Optional[BinLookupError] = None


class ScanBinRequest(BaseModel):
    bin_code: str = Field(..., min_length=1, max_length=50)
    performed_by: str = Field(..., min_length=1, max_length=100)


class ScanBinResponse(BaseModel):
    """Scanned bin occupancy and the SKUs recorded in it."""
    bin_code: str
    status: str
    capacity: int
    current_quantity: int
    available_capacity: int
    skus: List[str]


# ==================== QUEUE ====================

class PutawayQueueItem(BaseResponseSchema):
    """GRN line waiting for putaway."""
    id: uuid.UUID
    grn_id: uuid.UUID
    sku: str
    received_qty: int
    qc_pass_qty: int
    putaway_qty: int
    putaway_status: str
    created_at: datetime


class PutawayQueueResponse(PaginatedResponse):
    """Paginated putaway queue."""
    items: List[PutawayQueueItem]


# ==================== AUDIT ====================

class PutawayAuditResponse(BaseResponseSchema):
    """Putaway audit entry."""
    id: uuid.UUID
    action: str
    performed_by: str
    sku: Optional[str] = None
    quantity: Optional[int] = None
    grn_id: Optional[uuid.UUID] = None
    grn_line_id: Optional[uuid.UUID] = None
    from_bin_code: Optional[str] = None
    to_bin_code: Optional[str] = None
    remarks: Optional[str] = None
    performed_at: datetime


class PutawayAuditListResponse(PaginatedResponse):
    """Paginated audit entries."""
    items: List[PutawayAuditResponse]
