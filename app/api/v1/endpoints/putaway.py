"""Scanner putaway API endpoints: queue, scan product, scan bin, confirm."""
from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.api.deps import Putaway
from app.models.putaway import PutawayAction
from app.schemas.putaway import (
    PutawayConfirmRequest,
    PutawayConfirmResponse,
    BinOccupancy,
    ScanProductRequest,
    ScanProductResponse,
    ScannedBin,
    BinLookupError,
    ScanBinRequest,
    ScanBinResponse,
    PutawayQueueItem,
    PutawayQueueResponse,
    PutawayAuditResponse,
    PutawayAuditListResponse,
)
from app.services.putaway_service import PutawayRejected


router = APIRouter()


# ==================== QUEUE ====================

@router.get(
    "/queue",
    response_model=PutawayQueueResponse,
)
async def get_putaway_queue(
    putaway: Putaway,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    grn_id: Optional[uuid.UUID] = Query(None),
    sku: Optional[str] = Query(None),
):
    """GRN lines with QC-passed stock still waiting for a bin."""
    lines, total = await putaway.putaway_queue(
        grn_id=grn_id,
        sku=sku,
        skip=(page - 1) * size,
        limit=size,
    )

    return PutawayQueueResponse(
        items=[PutawayQueueItem.model_validate(line) for line in lines],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


# ==================== SCAN ====================

@router.post(
    "/scan-product",
    response_model=ScanProductResponse,
)
async def scan_product(
    data: ScanProductRequest,
    putaway: Putaway,
):
    """
    Scan a SKU or EAN against a GRN.

    Returns the line quantities and the bin to use: the bin the SKU is
    already tracked in, or a category-based suggestion.
    """
    scan = await putaway.scan_product(data.code, data.grn_id, data.performed_by)

    bin = None
    if scan.bin is not None:
        available = scan.bin.capacity - scan.bin.current_quantity
        bin = ScannedBin(
            bin_code=scan.bin.bin_code,
            source=scan.bin_source,
            match_type=scan.match_type,
            zone=scan.bin.zone,
            aisle=scan.bin.aisle,
            rack=scan.bin.rack,
            shelf=scan.bin.shelf,
            status=scan.bin.status,
            capacity=scan.bin.capacity,
            current_quantity=scan.bin.current_quantity,
            available_capacity=available,
            has_capacity=available > 0,
        )

    bin_error = None
    if scan.bin_error is not None:
        bin_error = BinLookupError(
            code=scan.bin_error.code,
            message=scan.bin_error.message,
            reason=scan.bin_error.details.get("reason"),
        )

    return ScanProductResponse(
        sku=scan.product.sku,
        name=scan.product.name,
        category=scan.product.category,
        grn_line_id=scan.line.id,
        received_qty=scan.line.received_qty,
        qc_pass_qty=scan.line.qc_pass_qty,
        putaway_qty=scan.line.putaway_qty,
        putaway_status=scan.line.putaway_status,
        bin=bin,
        bin_error=bin_error,
    )


@router.post(
    "/scan-bin",
    response_model=ScanBinResponse,
)
async def scan_bin(
    data: ScanBinRequest,
    putaway: Putaway,
):
    """Scan a bin: occupancy and the SKUs already in it."""
    bin, skus = await putaway.scan_bin(data.bin_code, data.performed_by)

    return ScanBinResponse(
        bin_code=bin.bin_code,
        status=bin.status,
        capacity=bin.capacity,
        current_quantity=bin.current_quantity,
        available_capacity=bin.available_capacity,
        skus=skus,
    )


# ==================== CONFIRM ====================

@router.post(
    "/confirm",
    response_model=PutawayConfirmResponse,
    responses={
        400: {"description": "Validation error"},
        404: {"description": "GRN line or bin not found"},
        409: {"description": "Line already complete or bin conflict"},
        422: {"description": "Insufficient quantity, capacity exceeded or invalid bin"},
    },
)
async def confirm_putaway(
    data: PutawayConfirmRequest,
    putaway: Putaway,
):
    """
    Confirm a putaway quantity into a bin.

    The receipt line, bin occupancy, scan indexes and audit trail are saved
    together. A failed inventory sync is reported in
    `inventory_sync_warning` and does not undo the putaway.
    """
    result = await putaway.confirm_putaway(
        sku=data.sku,
        grn_id=data.grn_id,
        quantity=data.quantity,
        bin_code=data.bin_code,
        actor=data.performed_by,
        remarks=data.remarks,
    )

    if isinstance(result, PutawayRejected):
        return JSONResponse(status_code=result.status_code, content=result.to_dict())

    return PutawayConfirmResponse(
        status=result.status.value,
        remaining_qty=result.remaining_qty,
        bin_occupancy=BinOccupancy(
            code=result.bin_code,
            current=result.bin_current,
            capacity=result.bin_capacity,
        ),
        grn_line_id=result.grn_line_id,
        grn_status=result.grn_status,
        inventory_sync_warning=result.inventory_sync_warning,
    )


# ==================== AUDIT ====================

@router.get(
    "/audit",
    response_model=PutawayAuditListResponse,
)
async def list_putaway_audit(
    putaway: Putaway,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    sku: Optional[str] = Query(None),
    grn_id: Optional[uuid.UUID] = Query(None),
    action: Optional[PutawayAction] = Query(None),
    performed_by: Optional[str] = Query(None),
):
    """Putaway audit trail, newest first."""
    entries, total = await putaway.audit.get_entries(
        sku=sku,
        grn_id=grn_id,
        action=action,
        performed_by=performed_by,
        skip=(page - 1) * size,
        limit=size,
    )

    return PutawayAuditListResponse(
        items=[PutawayAuditResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )
