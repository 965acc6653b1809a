"""Batched resolution and filtering of candidate CNPJs."""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

from cnpj_pull.config import settings
from cnpj_pull.models import FilterSet, ProgressSnapshot, ResolvedEntity
from cnpj_pull.registry import RegistryResolver
from .scope import Outcome, ScopeFilter

logger = logging.getLogger(__name__)


@dataclass
class MatchFound:
    entity: ResolvedEntity
    progress: ProgressSnapshot


@dataclass
class BatchCompleted:
    progress: ProgressSnapshot


OrchestratorUpdate = Union[MatchFound, BatchCompleted]


@dataclass
class OrchestratorResult:
    matches: list[ResolvedEntity] = field(default_factory=list)
    progress: ProgressSnapshot = field(default_factory=ProgressSnapshot)


class BatchOrchestrator:
    """Resolve candidates in fixed-size concurrent batches until N matches.

    Each batch is awaited as a whole before the next one starts, which
    bounds simultaneous provider calls to the batch size. Candidates
    after the N-th match are not examined.
    """

    def __init__(
        self,
        resolver: RegistryResolver,
        scope: Optional[ScopeFilter] = None,
        batch_size: Optional[int] = None,
        max_candidates_factor: Optional[int] = None,
    ):
        self.resolver = resolver
        self.scope = scope or ScopeFilter()
        self.batch_size = batch_size or settings.batch_size
        self.max_candidates_factor = max_candidates_factor or settings.max_candidates_factor
        if self.batch_size < 1:
            raise ValueError("batch_size must be positive")

    async def run(
        self,
        candidates: list[str],
        filters: FilterSet,
        progress: Optional[ProgressSnapshot] = None,
    ) -> AsyncIterator[OrchestratorUpdate]:
        """Yield a MatchFound per accepted entity and a BatchCompleted per batch."""
        progress = progress if progress is not None else ProgressSnapshot()
        target = filters.limit
        if target <= 0 or not candidates:
            return

        pool = list(candidates)[: target * self.max_candidates_factor]
        progress.total = len(pool)
        logger.info(f"Validating {len(pool)} of {len(candidates)} candidates (target {target})")

        for start in range(0, len(pool), self.batch_size):
            batch = pool[start:start + self.batch_size]
            resolutions = await self.resolver.resolve_batch(batch)

            for resolution in resolutions:
                progress.processed += 1
                if resolution.from_cache:
                    progress.cache_hits += 1

                if resolution.entity is None:
                    progress.unresolved += 1
                    continue

                result = self.scope.apply(resolution.entity, filters)
                if result.outcome is Outcome.REJECTED_INACTIVE:
                    progress.rejected_inactive += 1
                elif result.outcome is Outcome.REJECTED_OUT_OF_SCOPE:
                    progress.rejected_out_of_scope += 1
                else:
                    progress.matched += 1
                    yield MatchFound(resolution.entity, progress.model_copy())
                    if progress.matched >= target:
                        break

                if result.reason:
                    logger.debug(f"Rejected {resolution.cnpj}: {result.reason}")

            yield BatchCompleted(progress.model_copy())
            if progress.matched >= target:
                logger.info(f"Reached target of {target} matches")
                break

    async def collect(self, candidates: list[str], filters: FilterSet) -> OrchestratorResult:
        """Run to completion and gather matches."""
        result = OrchestratorResult()
        async for update in self.run(candidates, filters, result.progress):
            if isinstance(update, MatchFound):
                result.matches.append(update.entity)
        return result
