"""Targeting filters for a discovery run."""

import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cnpj_pull.config import settings
from cnpj_pull.errors import FilterValidationError


class FilterSet(BaseModel):
    """Segment, location and size constraints for one discovery run."""

    model_config = ConfigDict(frozen=True)

    segment: Optional[str] = Field(default=None, description="Industry segment, e.g. 'Restaurantes'")
    region: Optional[str] = Field(default=None, description="Two-letter state code (UF)")
    city: Optional[str] = Field(default=None, description="Municipality name")
    size_bands: tuple[str, ...] = Field(default=(), description="Accepted size bands (mei, me, epp, medio, grande)")
    limit: int = Field(default=settings.default_result_limit, ge=0, description="Target number of matches")

    @field_validator("segment", "city", mode="before")
    @classmethod
    def _strip_text(cls, value):
        if isinstance(value, str):
            value = " ".join(value.split())
            return value or None
        return value

    @field_validator("region", mode="before")
    @classmethod
    def _normalize_region(cls, value):
        if isinstance(value, str):
            value = value.strip().upper()
            return value or None
        return value

    @field_validator("size_bands", mode="before")
    @classmethod
    def _normalize_bands(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(b.strip() for b in value if b and b.strip())

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent."""
        missing = []
        if not self.segment:
            missing.append("segment")
        if not self.region:
            missing.append("region")
        return missing

    def require(self) -> "FilterSet":
        """Raise FilterValidationError unless segment and region are set."""
        missing = self.missing_fields()
        if missing:
            raise FilterValidationError(missing)
        return self

    def cache_key(self) -> str:
        """Canonical key for exact-filter result caching."""
        return json.dumps(
            {
                "segment": (self.segment or "").casefold(),
                "region": self.region or "",
                "city": (self.city or "").casefold(),
                "size_bands": sorted(b.casefold() for b in self.size_bands),
                "limit": self.limit,
            },
            sort_keys=True,
        )
