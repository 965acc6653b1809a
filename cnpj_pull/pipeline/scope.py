"""Post-resolution filters: active status, location and size band."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cnpj_pull.models import FilterSet, ResolvedEntity
from cnpj_pull.models.entity import is_active_status, strip_accents

logger = logging.getLogger(__name__)

__all__ = [
    "Outcome",
    "FilterResult",
    "ScopeFilter",
    "is_active_status",
    "normalize_size_band",
    "SIZE_BAND_ACCEPTS",
]

# Registry size classes accepted for each requested band. The registry
# reports medium and large companies together as "DEMAIS".
SIZE_BAND_ACCEPTS = {
    "mei": {"mei"},
    "me": {"me"},
    "epp": {"epp"},
    "medio": {"medio", "demais"},
    "grande": {"grande", "demais"},
    "demais": {"demais", "medio", "grande"},
}

_WORDS = re.compile(r"[a-z]+")


def _fold(value: str) -> str:
    return strip_accents(value).casefold().strip()


def normalize_size_band(value: Optional[str]) -> Optional[str]:
    """Map a size label ("MICRO EMPRESA", "EPP", "Médio"...) to a band key."""
    if not value:
        return None
    folded = _fold(value)
    words = set(_WORDS.findall(folded))
    if "mei" in words or "microempreendedor" in folded:
        return "mei"
    if "epp" in words or "pequeno" in words:
        return "epp"
    if "me" in words or "micro" in words or "microempresa" in words:
        return "me"
    if "medio" in words or "media" in words:
        return "medio"
    if "grande" in words:
        return "grande"
    if "demais" in words:
        return "demais"
    return None


def city_matches(entity_city: Optional[str], wanted: str) -> bool:
    """Accent- and case-insensitive substring match in either direction."""
    if not entity_city:
        return False
    have = strip_accents(entity_city).upper().strip()
    want = strip_accents(wanted).upper().strip()
    return want in have or have in want


class Outcome(str, Enum):
    MATCHED = "matched"
    REJECTED_INACTIVE = "rejected_inactive"
    REJECTED_OUT_OF_SCOPE = "rejected_out_of_scope"


@dataclass
class FilterResult:
    """Result of applying scope filters to one entity."""

    outcome: Outcome
    reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.MATCHED


class ScopeFilter:
    """Decide whether a resolved entity belongs in the result set."""

    def apply(self, entity: ResolvedEntity, filters: FilterSet) -> FilterResult:
        if not is_active_status(entity.status):
            return FilterResult(Outcome.REJECTED_INACTIVE, f"Status: {entity.status or 'unknown'}")

        location_reason = self._check_location(entity, filters)
        if location_reason:
            return FilterResult(Outcome.REJECTED_OUT_OF_SCOPE, location_reason)

        size_reason = self._check_size(entity, filters)
        if size_reason:
            return FilterResult(Outcome.REJECTED_OUT_OF_SCOPE, size_reason)

        return FilterResult(Outcome.MATCHED)

    def _check_location(self, entity: ResolvedEntity, filters: FilterSet) -> Optional[str]:
        if filters.region and (entity.region or "").upper() != filters.region:
            return f"Region {entity.region or 'unknown'} != {filters.region}"
        if filters.city and not city_matches(entity.municipality, filters.city):
            return f"City {entity.municipality or 'unknown'} != {filters.city}"
        return None

    def _check_size(self, entity: ResolvedEntity, filters: FilterSet) -> Optional[str]:
        if not filters.size_bands:
            return None
        band = normalize_size_band(entity.size_band)
        if band is None:
            # Size unknown: cannot be ruled out
            return None
        for requested in filters.size_bands:
            key = normalize_size_band(requested)
            if key and band in SIZE_BAND_ACCEPTS[key]:
                return None
        return f"Size {entity.size_band} not in {', '.join(filters.size_bands)}"
