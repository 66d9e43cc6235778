"""
Putaway error taxonomy.

Every business-rule rejection raised by the ledger, the bin allocator, the scan
store and the putaway coordinator is a PutawayError. The coordinator converts
them into a rejected PutawayResult; the API renders them as JSON with the
carried status code.
"""
from typing import Any, Dict, Optional

from fastapi import status


class PutawayError(Exception):
    """Base putaway error."""

    code: str = "PUTAWAY_ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(PutawayError):
    """Quantity identity or state violation. Never retried."""
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(PutawayError):
    """Missing GRN line, bin or SKU."""
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientQuantityError(PutawayError):
    code = "INSUFFICIENT_QUANTITY"
    status_code = 422


class CapacityExceededError(PutawayError):
    code = "CAPACITY_EXCEEDED"
    status_code = 422


class NoSuitableBinError(PutawayError):
    """Allocator exhausted every tier."""
    code = "NO_SUITABLE_BIN"
    status_code = 422

    def __init__(self, message: str, reason: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(message, {"reason": reason, **(details or {})})


class InvalidBinStateError(PutawayError):
    code = "INVALID_BIN_STATE"
    status_code = 422


class AlreadyCompleteError(PutawayError):
    code = "ALREADY_COMPLETE"
    status_code = status.HTTP_409_CONFLICT


class BinConflictError(PutawayError):
    """Placement policy violation (SKU/bin affinity)."""
    code = "BIN_CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class TransientConflictError(PutawayError):
    """Unique-constraint race that survived the internal retry."""
    code = "TRANSIENT_CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(PutawayError):
    code = "PERSISTENCE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
