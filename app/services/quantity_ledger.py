"""
Quantity ledger for GRN receipt lines.

All quantity and status changes to a GRNLine go through this module:
recording a receipt, editing it before putaway starts, and consuming
QC-passed stock for putaway.
"""
from typing import Optional, Dict, Any

from app.core.exceptions import (
    ValidationError,
    InsufficientQuantityError,
    AlreadyCompleteError,
)
from app.models.purchase import GRNLine, LineStatus, PutawayStatus


QUANTITY_FIELDS = (
    "ordered_qty",
    "received_qty",
    "qc_pass_qty",
    "held_qty",
    "rtv_qty",
    "rejected_qty",
)


def derive_putaway_status(remaining_qty: int, consumed: bool) -> PutawayStatus:
    """
    Putaway status from the putaway-eligible remainder.

    Args:
        remaining_qty: qc_pass_qty left after the mutation
        consumed: whether any quantity has been put away so far
    """
    if remaining_qty <= 0 and consumed:
        return PutawayStatus.COMPLETED
    if consumed:
        return PutawayStatus.PARTIAL
    return PutawayStatus.PENDING


def derive_line_status(ordered_qty: int, received_qty: int) -> LineStatus:
    """Receipt progress against the ordered quantity."""
    if received_qty == 0:
        return LineStatus.PENDING
    if ordered_qty == received_qty:
        return LineStatus.COMPLETED
    return LineStatus.PARTIAL


def check_rejection_state(received_qty: int, rejected_qty: int) -> None:
    """Reject receipt states that must never reach putaway."""
    if received_qty == 0 and rejected_qty > 0:
        raise ValidationError(
            "invalid rejection state",
            {"received_qty": received_qty, "rejected_qty": rejected_qty},
        )
    if received_qty < rejected_qty and rejected_qty != 0:
        raise ValidationError(
            "invalid rejection state",
            {"received_qty": received_qty, "rejected_qty": rejected_qty},
        )


def _validate_quantities(
    ordered_qty: int,
    received_qty: int,
    qc_pass_qty: int,
    held_qty: int,
    rtv_qty: int,
    rejected_qty: int,
) -> int:
    check_rejection_state(received_qty, rejected_qty)

    values = {
        "ordered_qty": ordered_qty,
        "received_qty": received_qty,
        "qc_pass_qty": qc_pass_qty,
        "held_qty": held_qty,
        "rtv_qty": rtv_qty,
        "rejected_qty": rejected_qty,
    }
    negative = {name: value for name, value in values.items() if value < 0}
    if negative:
        raise ValidationError("quantities must not be negative", negative)

    qc_fail_qty = held_qty + rtv_qty
    if qc_pass_qty + qc_fail_qty != received_qty:
        raise ValidationError(
            "qcPass+qcFail≠received",
            {
                "qc_pass_qty": qc_pass_qty,
                "qc_fail_qty": qc_fail_qty,
                "received_qty": received_qty,
            },
        )
    return qc_fail_qty


def record_receipt(
    sku: str,
    ordered_qty: int,
    received_qty: int,
    qc_pass_qty: Optional[int] = None,
    held_qty: int = 0,
    rtv_qty: int = 0,
    rejected_qty: int = 0,
    remarks: Optional[str] = None,
) -> GRNLine:
    """
    Build a validated, not yet persisted receipt line.

    qc_fail_qty is derived as held_qty + rtv_qty and an omitted qc_pass_qty
    counts as zero. The rejection-state check runs before anything else.

    Raises:
        ValidationError: quantity identity or rejection state violated
    """
    qc_pass = qc_pass_qty or 0
    qc_fail_qty = _validate_quantities(
        ordered_qty, received_qty, qc_pass, held_qty, rtv_qty, rejected_qty
    )

    return GRNLine(
        sku=sku,
        ordered_qty=ordered_qty,
        received_qty=received_qty,
        pending_qty=ordered_qty - received_qty,
        rejected_qty=rejected_qty,
        qc_pass_qty=qc_pass,
        qc_fail_qty=qc_fail_qty,
        held_qty=held_qty,
        rtv_qty=rtv_qty,
        putaway_qty=0,
        line_status=derive_line_status(ordered_qty, received_qty).value,
        putaway_status=PutawayStatus.PENDING.value,
        remarks=remarks,
    )


def validate_line_update(line: GRNLine, changes: Dict[str, Any]) -> GRNLine:
    """
    Apply an edit to a recorded line after re-validating the quantity identity.

    Quantities are frozen once putaway has started on the line; remarks can
    still be changed.
    """
    quantity_changes = {
        name: value for name, value in changes.items()
        if name in QUANTITY_FIELDS and value is not None
    }

    if quantity_changes:
        if line.putaway_qty > 0 or line.putaway_status != PutawayStatus.PENDING.value:
            raise ValidationError(
                "quantities cannot be edited after putaway has started",
                {"line_id": str(line.id), "putaway_status": line.putaway_status},
            )

        merged = {name: getattr(line, name) for name in QUANTITY_FIELDS}
        merged.update(quantity_changes)
        qc_fail_qty = _validate_quantities(
            merged["ordered_qty"],
            merged["received_qty"],
            merged["qc_pass_qty"],
            merged["held_qty"],
            merged["rtv_qty"],
            merged["rejected_qty"],
        )

        for name, value in merged.items():
            setattr(line, name, value)
        line.qc_fail_qty = qc_fail_qty
        line.pending_qty = merged["ordered_qty"] - merged["received_qty"]
        line.line_status = derive_line_status(merged["ordered_qty"], merged["received_qty"]).value

    if "remarks" in changes:
        line.remarks = changes["remarks"]

    return line


def consume_for_putaway(line: GRNLine, quantity: int) -> GRNLine:
    """
    Take quantity out of the line's putaway-eligible stock.

    The completed-line and positive-quantity checks are repeated here for
    callers that use the ledger without the putaway coordinator.

    Raises:
        AlreadyCompleteError: line putaway already completed
        ValidationError: non-positive quantity or nothing received
        InsufficientQuantityError: quantity exceeds received or QC-passed stock
    """
    if line.putaway_status == PutawayStatus.COMPLETED.value:
        raise AlreadyCompleteError(
            "putaway already completed for this line",
            {"line_id": str(line.id), "sku": line.sku},
        )
    if quantity <= 0:
        raise ValidationError("quantity must be positive", {"quantity": quantity})
    if line.received_qty <= 0:
        raise ValidationError(
            "nothing received on this line",
            {"line_id": str(line.id), "received_qty": line.received_qty},
        )
    if quantity > line.received_qty:
        raise InsufficientQuantityError(
            "quantity exceeds received quantity",
            {"quantity": quantity, "received_qty": line.received_qty},
        )
    if quantity > line.qc_pass_qty:
        raise InsufficientQuantityError(
            "quantity exceeds QC-passed quantity available for putaway",
            {"quantity": quantity, "qc_pass_qty": line.qc_pass_qty},
        )

    line.qc_pass_qty = line.qc_pass_qty - quantity
    line.putaway_qty = (line.putaway_qty or 0) + quantity
    line.putaway_status = derive_putaway_status(line.qc_pass_qty, consumed=True).value
    return line
