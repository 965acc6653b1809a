"""API routes for CNPJ discovery."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from cnpj_pull.config import settings
from cnpj_pull.discovery import MockSearchProvider
from cnpj_pull.errors import FilterValidationError, SearchProviderUnavailable
from cnpj_pull.identifiers import clean_cnpj, is_valid_cnpj
from cnpj_pull.models import FilterSet, ResolvedEntity, RunStats
from cnpj_pull.models.database import init_db
from cnpj_pull.pipeline import DiscoveryService
from cnpj_pull.registry import MockRegistryProvider, RegistryResolver, ResolutionCache
from .streaming import DetachedStream

logger = logging.getLogger(__name__)

router = APIRouter()


class DiscoveryRequest(BaseModel):
    """Request body for a discovery run."""
    segment: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    size_bands: list[str] = Field(default_factory=list)
    limit: int = Field(default=settings.default_result_limit, ge=0, le=settings.max_result_limit)
    streaming: bool = True
    use_mock: bool = False

    def to_filters(self) -> FilterSet:
        return FilterSet(
            segment=self.segment,
            region=self.region,
            city=self.city,
            size_bands=self.size_bands,
            limit=self.limit,
        )


class DiscoveryResponse(BaseModel):
    """Non-streaming discovery result."""
    matches: list[ResolvedEntity]
    stats: RunStats


def build_resolver(use_mock: bool = False) -> RegistryResolver:
    if use_mock:
        cache = ResolutionCache(init_db(settings.mock_database_url))
        return RegistryResolver(providers=[MockRegistryProvider()], cache=cache)
    return RegistryResolver()


def build_discovery_service(use_mock: bool = False) -> DiscoveryService:
    if use_mock:
        return DiscoveryService(search_provider=MockSearchProvider(), resolver=build_resolver(True))
    return DiscoveryService()


@router.post("/discover")
async def discover(request: DiscoveryRequest):
    """Discover active companies matching the filters."""
    filters = request.to_filters()
    try:
        filters.require()
    except FilterValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "validation", "missing": e.missing, "message": str(e)},
        )

    try:
        service = build_discovery_service(request.use_mock)
    except SearchProviderUnavailable as e:
        raise HTTPException(status_code=503, detail={"error": "search_unavailable", "message": str(e)})

    if request.streaming:
        stream = DetachedStream(service.stream(filters))
        return StreamingResponse(
            stream.frames(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    try:
        result = await service.run(filters)
    except SearchProviderUnavailable as e:
        raise HTTPException(status_code=503, detail={"error": "search_unavailable", "message": str(e)})

    return DiscoveryResponse(matches=result.matches, stats=result.stats)


@router.get("/registry/{identifier}", response_model=ResolvedEntity)
async def lookup_identifier(identifier: str, use_mock: bool = False):
    """Resolve a single CNPJ against the registry."""
    cnpj = clean_cnpj(identifier)
    if not is_valid_cnpj(cnpj):
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_identifier", "message": f"Invalid CNPJ: {identifier}"},
        )

    entity = await build_resolver(use_mock).resolve(cnpj)
    if entity is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": f"CNPJ not found: {cnpj}"},
        )
    return entity
