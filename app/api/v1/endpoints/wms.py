"""WMS (Warehouse Management System) API endpoints."""
from typing import Optional
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from app.api.deps import Wms
from app.core.exceptions import NotFoundError
from app.models.wms import BinType, BinStatus
from app.schemas.wms import (
    BinCreate,
    BinUpdate,
    BinResponse,
    BinListResponse,
    BinContentsResponse,
    PutAwaySuggestRequest,
    PutAwaySuggestResponse,
)


router = APIRouter()


# ==================== BIN CRUD ====================

@router.get(
    "/bins",
    response_model=BinListResponse,
)
async def list_bins(
    wms: Wms,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    zone: Optional[str] = Query(None),
    bin_type: Optional[BinType] = Query(None),
    bin_status: Optional[BinStatus] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    only_available: bool = Query(False),
):
    """Get paginated list of warehouse bins."""
    bins, total = await wms.get_bins(
        zone=zone,
        bin_type=bin_type,
        status=bin_status,
        category=category,
        only_available=only_available,
        skip=(page - 1) * size,
        limit=size,
    )

    return BinListResponse(
        items=[BinResponse.model_validate(b) for b in bins],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get(
    "/bins/{bin_code}",
    response_model=BinResponse,
)
async def get_bin(
    bin_code: str,
    wms: Wms,
):
    """Get bin by code."""
    bin = await wms.get_bin_by_code(bin_code)
    if not bin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bin not found"
        )

    return BinResponse.model_validate(bin)


@router.post(
    "/bins",
    response_model=BinResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bin(
    data: BinCreate,
    wms: Wms,
):
    """Create a new warehouse bin."""
    try:
        bin = await wms.create_bin(data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return BinResponse.model_validate(bin)


@router.put(
    "/bins/{bin_code}",
    response_model=BinResponse,
)
async def update_bin(
    bin_code: str,
    data: BinUpdate,
    wms: Wms,
):
    """Update a warehouse bin."""
    bin = await wms.update_bin(bin_code, data)
    return BinResponse.model_validate(bin)


@router.get(
    "/bins/{bin_code}/contents",
    response_model=BinContentsResponse,
)
async def get_bin_contents(
    bin_code: str,
    wms: Wms,
):
    """Get a bin with the SKUs putaway has placed in it."""
    try:
        bin, skus = await wms.get_bin_contents(bin_code)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bin not found"
        )

    return BinContentsResponse(
        bin=BinResponse.model_validate(bin),
        skus=skus,
        sku_count=len(skus),
    )


# ==================== PUTAWAY SUGGESTION ====================

@router.post(
    "/putaway/suggest",
    response_model=PutAwaySuggestResponse,
)
async def suggest_putaway(
    data: PutAwaySuggestRequest,
    wms: Wms,
):
    """
    Suggest a bin for putaway.

    Bins are matched by preferred category, then category mapping (exact,
    then partial), then free capacity, then the least-filled bin. Failures
    carry a `reason` of `missing_category` or `no_active_bins`.
    """
    if not data.category and not data.sku:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either category or sku is required"
        )

    suggestion, category = await wms.suggest_bin(
        category=data.category,
        sku=data.sku,
        required_qty=data.required_qty,
    )
    bin = suggestion.bin

    return PutAwaySuggestResponse(
        bin_code=bin.bin_code,
        match_type=suggestion.match_type,
        category=category,
        zone=bin.zone,
        aisle=bin.aisle,
        rack=bin.rack,
        shelf=bin.shelf,
        capacity=bin.capacity,
        current_quantity=bin.current_quantity,
        available_capacity=suggestion.available_capacity,
        utilization_percent=suggestion.utilization_percent,
        fits_required_qty=suggestion.fits_required_qty,
    )
