"""Pydantic schemas for WMS bins and bin suggestion."""
from pydantic import BaseModel, Field, model_validator

from app.schemas.base import BaseResponseSchema
from typing import Optional, List
from datetime import datetime
import uuid

from app.models.wms import BinType, BinStatus
from app.services.bin_allocator import MatchType


# ==================== WAREHOUSE BIN SCHEMAS ====================

class BinCreate(BaseModel):
    """Warehouse bin creation schema."""
    bin_code: str = Field(..., min_length=1, max_length=50)
    bin_name: Optional[str] = None
    zone: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin_type: BinType = BinType.SHELF
    capacity: int = Field(..., gt=0)
    current_quantity: int = Field(0, ge=0)
    status: BinStatus = BinStatus.ACTIVE
    preferred_category: Optional[str] = None
    category_mapping: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_occupancy(self):
        if self.current_quantity > self.capacity:
            raise ValueError("current_quantity cannot exceed capacity")
        return self


class BinUpdate(BaseModel):
    """Warehouse bin update schema. Occupancy only changes through putaway."""
    bin_name: Optional[str] = None
    zone: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin_type: Optional[BinType] = None
    capacity: Optional[int] = Field(None, gt=0)
    status: Optional[BinStatus] = None
    preferred_category: Optional[str] = None
    category_mapping: Optional[List[str]] = None


class BinResponse(BaseResponseSchema):
    """Warehouse bin response schema."""
    id: uuid.UUID
    bin_code: str
    bin_name: Optional[str] = None
    zone: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin_type: str  # VARCHAR in DB
    capacity: int
    current_quantity: int
    status: str
    preferred_category: Optional[str] = None
    category_mapping: Optional[List[str]] = None
    is_empty: bool
    is_full: bool
    available_capacity: int
    utilization_percent: float
    last_activity_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BinListResponse(BaseModel):
    """Paginated bin list."""
    items: List[BinResponse]
    total: int
    page: int
    size: int
    pages: int


class BinContentsResponse(BaseModel):
    """Bin with the SKUs recorded in it by putaway."""
    bin: BinResponse
    skus: List[str]
    sku_count: int


# ==================== PUTAWAY SUGGESTION ====================

class PutAwaySuggestRequest(BaseModel):
    """Bin suggestion request; sku resolves the category from the product master."""
    category: Optional[str] = None
    sku: Optional[str] = None
    required_qty: int = Field(1, gt=0)


class PutAwaySuggestResponse(BaseModel):
    """Suggested bin for putaway."""
    bin_code: str
    match_type: MatchType
    category: str
    zone: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    capacity: int
    current_quantity: int
    available_capacity: int
    utilization_percent: int
    fits_required_qty: bool
