"""Goods Receipt Note API endpoints."""
import uuid

from fastapi import APIRouter, HTTPException, status

from app.api.deps import DB
from app.schemas.grn import (
    GRNCreate,
    GRNResponse,
    GRNLineCreate,
    GRNLineUpdate,
    GRNLineResponse,
)
from app.services.grn_service import GRNService


router = APIRouter()


# ==================== GRN ====================

@router.post(
    "",
    response_model=GRNResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_grn(
    data: GRNCreate,
    db: DB,
):
    """
    Record a GRN with its receipt lines.

    Each line must satisfy qc_pass_qty + held_qty + rtv_qty == received_qty.
    """
    service = GRNService(db)
    try:
        grn = await service.create_grn(data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return GRNResponse.model_validate(grn)


@router.get(
    "/{grn_id}",
    response_model=GRNResponse,
)
async def get_grn(
    grn_id: uuid.UUID,
    db: DB,
):
    """Get a GRN with its lines."""
    grn = await GRNService(db).get_grn(grn_id)
    return GRNResponse.model_validate(grn)


# ==================== LINES ====================

@router.post(
    "/{grn_id}/lines",
    response_model=GRNLineResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_grn_line(
    grn_id: uuid.UUID,
    data: GRNLineCreate,
    db: DB,
):
    """Record another receipt line on a GRN."""
    line = await GRNService(db).add_line(grn_id, data)
    return GRNLineResponse.model_validate(line)


@router.put(
    "/lines/{line_id}",
    response_model=GRNLineResponse,
)
async def update_grn_line(
    line_id: uuid.UUID,
    data: GRNLineUpdate,
    db: DB,
):
    """Edit a receipt line. Quantities cannot change once putaway has started."""
    line = await GRNService(db).update_line(line_id, data)
    return GRNLineResponse.model_validate(line)


@router.delete(
    "/lines/{line_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_grn_line(
    line_id: uuid.UUID,
    db: DB,
):
    """Delete a receipt line that has not been put away."""
    await GRNService(db).delete_line(line_id)
