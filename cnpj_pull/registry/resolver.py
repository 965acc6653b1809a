"""Cache-backed CNPJ resolution with provider fallback."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from cnpj_pull.config import settings
from cnpj_pull.identifiers import clean_cnpj
from cnpj_pull.models import ResolvedEntity
from .cache import ResolutionCache
from .providers import RegistryProvider, build_providers

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """Outcome of resolving one CNPJ."""

    cnpj: str
    entity: Optional[ResolvedEntity] = None
    from_cache: bool = False

    @property
    def resolved(self) -> bool:
        return self.entity is not None


class RegistryResolver:
    """Resolve CNPJs: cache first, then each provider in order.

    Provider failures and timeouts are absorbed here; callers only ever
    see "no data" (None).
    """

    def __init__(
        self,
        providers: Optional[list[RegistryProvider]] = None,
        cache: Optional[ResolutionCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.providers = providers if providers is not None else build_providers()
        self.cache = cache if cache is not None else ResolutionCache()
        self._client = client
        self._owns_client = False

    async def __aenter__(self) -> "RegistryResolver":
        if self._client is None:
            self._client = _new_client()
            self._owns_client = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def resolve(self, cnpj: str) -> Optional[ResolvedEntity]:
        """Return registry data for a CNPJ, or None when no source has it."""
        resolution = await self.lookup(cnpj)
        return resolution.entity

    async def lookup(self, cnpj: str, write_cache: bool = True) -> Resolution:
        cnpj = clean_cnpj(cnpj)

        cached = await self.cache.get(cnpj)
        if cached is not None:
            logger.debug(f"Cache hit for {cnpj}")
            return Resolution(cnpj=cnpj, entity=cached, from_cache=True)

        entity = await self.fetch_from_providers(cnpj)
        if entity is not None and write_cache:
            await self.cache.put(entity)
        return Resolution(cnpj=cnpj, entity=entity)

    async def resolve_batch(self, cnpjs: list[str]) -> list[Resolution]:
        """Resolve concurrently; fresh results are cached in one upsert."""
        resolutions = await asyncio.gather(
            *(self.lookup(cnpj, write_cache=False) for cnpj in cnpjs)
        )
        fresh = [r.entity for r in resolutions if r.entity is not None and not r.from_cache]
        if fresh:
            await self.cache.put_many(fresh)
        return list(resolutions)

    async def fetch_from_providers(self, cnpj: str) -> Optional[ResolvedEntity]:
        async with self._http_client() as client:
            for provider in self.providers:
                entity = await self._try_provider(provider, cnpj, client)
                if entity is not None:
                    return entity

        logger.info(f"No registry data for {cnpj}")
        return None

    async def _try_provider(
        self,
        provider: RegistryProvider,
        cnpj: str,
        client: httpx.AsyncClient,
    ) -> Optional[ResolvedEntity]:
        try:
            return await asyncio.wait_for(provider.fetch(cnpj, client), timeout=provider.timeout)
        except asyncio.TimeoutError:
            logger.info(f"{provider.name} timed out for {cnpj}")
        except httpx.HTTPError as e:
            logger.warning(f"{provider.name} request failed for {cnpj}: {e}")
        except ValueError as e:
            # Malformed JSON or payload
            logger.warning(f"{provider.name} returned unusable data for {cnpj}: {e}")
        return None

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with _new_client() as client:
            yield client


def _new_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.provider_timeout),
        follow_redirects=True,
    )
