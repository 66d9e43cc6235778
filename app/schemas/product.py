"""Pydantic schemas for the product master."""
from datetime import datetime
from typing import Optional
import uuid

from pydantic import Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class ProductCreate(BaseCreateSchema):
    """Product creation schema."""
    sku: str = Field(..., min_length=1, max_length=50)
    ean_upc: Optional[str] = Field(None, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    is_active: bool = True


class ProductResponse(BaseResponseSchema):
    """Product response schema."""
    id: uuid.UUID
    sku: str
    ean_upc: Optional[str] = None
    name: str
    category: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
