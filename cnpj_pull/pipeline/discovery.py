"""A discovery run: search fan-out, extraction, then batched validation."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from cnpj_pull.config import settings
from cnpj_pull.discovery import IdentifierExtractor, SearchProvider, build_queries, get_search_provider
from cnpj_pull.errors import DiscoveryError, SearchProviderUnavailable, SearchQueryError
from cnpj_pull.models import (
    CompleteEvent,
    ErrorEvent,
    FilterSet,
    MatchEvent,
    ProgressEvent,
    ProgressSnapshot,
    ResolvedEntity,
    RunStats,
    SearchCompleteEvent,
    SearchProgressEvent,
    StatusEvent,
)
from cnpj_pull.registry import RegistryResolver
from .orchestrator import BatchOrchestrator, MatchFound

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    matches: list[ResolvedEntity] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)


class DiscoveryService:
    """Runs discovery for a filter set, as an event stream or all at once."""

    def __init__(
        self,
        search_provider: Optional[SearchProvider] = None,
        resolver: Optional[RegistryResolver] = None,
        batch_size: Optional[int] = None,
        results_per_query: Optional[int] = None,
    ):
        self.search_provider = search_provider or get_search_provider()
        self.resolver = resolver or RegistryResolver()
        self.batch_size = batch_size
        self.results_per_query = results_per_query or settings.search_results_per_query

    async def stream(self, filters: FilterSet) -> AsyncIterator:
        """Yield stream events; the last one is always complete or error."""
        started = time.monotonic()
        progress = ProgressSnapshot()
        try:
            filters.require()
            yield StatusEvent(message="Searching registry aggregators for active companies")

            extractor = IdentifierExtractor()
            async for _ in self._search(filters, extractor, progress):
                yield SearchProgressEvent(
                    queries_completed=progress.queries_completed,
                    total_queries=progress.total_queries,
                    candidates_found=progress.candidates_found,
                )
            yield SearchCompleteEvent(total_candidates=len(extractor))

            yield StatusEvent(message=f"Validating {len(extractor)} candidates against the registry")
            orchestrator = BatchOrchestrator(self.resolver, batch_size=self.batch_size)
            async for update in orchestrator.run(extractor.identifiers, filters, progress):
                if isinstance(update, MatchFound):
                    yield MatchEvent(entity=update.entity, progress=update.progress)
                else:
                    yield ProgressEvent(progress=update.progress)

            yield CompleteEvent(stats=self._stats(progress, started))
        except DiscoveryError as e:
            logger.warning(f"Discovery failed: {e}")
            yield ErrorEvent(message=str(e))
        except Exception as e:
            logger.exception(f"Unexpected discovery error: {e}")
            yield ErrorEvent(message=f"Unexpected error: {e}")

    async def run(self, filters: FilterSet) -> DiscoveryResult:
        """Run to completion without streaming. Errors propagate."""
        started = time.monotonic()
        filters.require()
        progress = ProgressSnapshot()

        extractor = IdentifierExtractor()
        async for _ in self._search(filters, extractor, progress):
            pass

        orchestrator = BatchOrchestrator(self.resolver, batch_size=self.batch_size)
        result = await orchestrator.collect(extractor.identifiers, filters)
        result.progress.queries_completed = progress.queries_completed
        result.progress.total_queries = progress.total_queries
        result.progress.candidates_found = progress.candidates_found
        return DiscoveryResult(matches=result.matches, stats=self._stats(result.progress, started))

    async def _search(
        self,
        filters: FilterSet,
        extractor: IdentifierExtractor,
        progress: ProgressSnapshot,
    ) -> AsyncIterator[int]:
        """Run all queries concurrently; yield after each one completes."""
        self.search_provider.ensure_available()
        queries = build_queries(filters)
        progress.total_queries = len(queries)
        failures = 0

        tasks = [asyncio.create_task(self._run_query(q)) for q in queries]
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    hits = await next_done
                except SearchQueryError as e:
                    logger.warning(str(e))
                    failures += 1
                    hits = []
                for hit in hits:
                    extractor.extract(hit.text)
                progress.queries_completed += 1
                progress.candidates_found = len(extractor)
                yield progress.queries_completed
        finally:
            for task in tasks:
                task.cancel()

        if failures == len(queries):
            raise SearchProviderUnavailable(
                f"All {len(queries)} searches failed on {self.search_provider.name}"
            )
        logger.info(f"Found {len(extractor)} candidate CNPJs from {len(queries)} queries")

    async def _run_query(self, query: str):
        return await self.search_provider.search(query, self.results_per_query)

    @staticmethod
    def _stats(progress: ProgressSnapshot, started: float) -> RunStats:
        return RunStats(
            **progress.model_dump(),
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )
