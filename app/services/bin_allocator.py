"""
Category-driven bin suggestion.

Pure selection logic over an already-loaded candidate list; loading the
candidates and resolving bins by code live in WMSService.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence

from app.core.exceptions import NoSuitableBinError, InvalidBinStateError
from app.models.wms import BinStatus


class MatchType(str, Enum):
    """Tier that produced a bin suggestion, highest precedence first."""
    EXACT_PREFERRED = "exact_preferred"
    EXACT_MAPPING = "exact_mapping"
    PARTIAL_MAPPING = "partial_mapping"
    AVAILABLE_CAPACITY = "available_capacity"
    FALLBACK = "fallback"


class NoBinReason(str, Enum):
    MISSING_CATEGORY = "missing_category"
    NO_ACTIVE_BINS = "no_active_bins"


class BinLike(Protocol):
    bin_code: str
    capacity: int
    current_quantity: int
    status: str
    preferred_category: Optional[str]
    category_mapping: Optional[List[str]]


@dataclass(frozen=True)
class BinSuggestion:
    bin: BinLike
    match_type: MatchType
    required_qty: int

    @property
    def available_capacity(self) -> int:
        return self.bin.capacity - self.bin.current_quantity

    @property
    def fits_required_qty(self) -> bool:
        return self.available_capacity >= self.required_qty

    @property
    def utilization_percent(self) -> int:
        return round((self.bin.current_quantity / self.bin.capacity) * 100)


def normalize_category(value: Optional[str]) -> str:
    """Lower-case and trim a category; None becomes an empty string."""
    return (value or "").strip().lower()


def _mapping_entries(bin: BinLike) -> List[str]:
    entries = bin.category_mapping or []
    if not isinstance(entries, list):
        return []
    return [normalize_category(entry) for entry in entries if normalize_category(entry)]


def order_candidates(bins: Iterable[BinLike]) -> List[BinLike]:
    """Sparse bins first, larger bins first among equally filled ones."""
    return sorted(bins, key=lambda b: (b.current_quantity, -b.capacity))


def validate_bin_state(bin: BinLike) -> None:
    """
    Raises:
        InvalidBinStateError: capacity not positive or occupancy outside [0, capacity]
    """
    if (
        bin.capacity is None
        or bin.current_quantity is None
        or bin.capacity <= 0
        or bin.current_quantity < 0
        or bin.current_quantity > bin.capacity
    ):
        raise InvalidBinStateError(
            "bin has invalid capacity or quantity data",
            {
                "bin_code": bin.bin_code,
                "capacity": bin.capacity,
                "current_quantity": bin.current_quantity,
            },
        )


class BinAllocator:
    """
    Picks a storage bin for a category.

    Tiers, first match wins, each over the full candidate list:
    exact preferred category, exact mapping entry, partial mapping entry
    (substring either way), any bin with free capacity, then the first
    candidate even if full. Callers must still check capacity before
    committing a fallback suggestion.
    """

    def suggest_bin(
        self,
        category: Optional[str],
        required_qty: int,
        candidate_bins: Sequence[BinLike],
    ) -> BinSuggestion:
        wanted = normalize_category(category)
        if not wanted:
            raise NoSuitableBinError(
                "product category is missing",
                NoBinReason.MISSING_CATEGORY.value,
            )

        candidates = order_candidates(
            b for b in candidate_bins if b.status == BinStatus.ACTIVE.value
        )
        if not candidates:
            raise NoSuitableBinError(
                "no active bins available",
                NoBinReason.NO_ACTIVE_BINS.value,
                {"category": wanted},
            )

        bin, match_type = self._select(wanted, candidates)
        validate_bin_state(bin)
        return BinSuggestion(bin=bin, match_type=match_type, required_qty=required_qty)

    def _select(self, wanted: str, candidates: List[BinLike]):
        for bin in candidates:
            if normalize_category(bin.preferred_category) == wanted:
                return bin, MatchType.EXACT_PREFERRED

        for bin in candidates:
            if wanted in _mapping_entries(bin):
                return bin, MatchType.EXACT_MAPPING

        for bin in candidates:
            if any(wanted in entry or entry in wanted for entry in _mapping_entries(bin)):
                return bin, MatchType.PARTIAL_MAPPING

        for bin in candidates:
            if bin.capacity - bin.current_quantity > 0:
                return bin, MatchType.AVAILABLE_CAPACITY

        return candidates[0], MatchType.FALLBACK
