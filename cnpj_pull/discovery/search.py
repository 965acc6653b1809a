"""Search providers used to discover pages that mention CNPJs."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
from bs4 import BeautifulSoup
from duckduckgo_search import DDGS
from duckduckgo_search.exceptions import DuckDuckGoSearchException

from cnpj_pull.config import settings
from cnpj_pull.errors import SearchProviderUnavailable, SearchQueryError
from cnpj_pull.identifiers import format_cnpj
from cnpj_pull.registry.mock import default_mock_entities

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    """One search result and whatever page text came with it."""

    url: str
    title: str = ""
    description: str = ""
    content: str = ""

    @property
    def text(self) -> str:
        return "\n".join(part for part in (self.content, self.title, self.description) if part)


class SearchProvider(ABC):
    """Abstract interface for a web search source."""

    name: str = "base"

    def ensure_available(self) -> None:
        """Raise SearchProviderUnavailable if the provider cannot be used."""

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[SearchHit]:
        """
        Run one query.

        Raises:
            SearchQueryError: the query could not be executed
        """


class FirecrawlSearchProvider(SearchProvider):
    """Firecrawl search API, returning result pages as markdown."""

    name = "firecrawl"
    endpoint = "https://api.firecrawl.dev/v1/search"

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key if api_key is not None else settings.firecrawl_api_key
        self._client = client

    def ensure_available(self) -> None:
        if not self.api_key:
            raise SearchProviderUnavailable("Firecrawl API key is not configured")

    async def search(self, query: str, limit: int) -> list[SearchHit]:
        self.ensure_available()
        payload = {
            "query": query,
            "limit": limit,
            "lang": settings.search_language,
            "country": settings.search_country,
            "scrapeOptions": {"formats": ["markdown"]},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.post(self.endpoint, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.search_timeout) as client:
                    response = await client.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SearchQueryError(f"Firecrawl search failed for {query!r}: {e}") from e

        return [
            SearchHit(
                url=item.get("url", ""),
                title=item.get("title") or "",
                description=item.get("description") or "",
                content=item.get("markdown") or "",
            )
            for item in data.get("data") or []
            if isinstance(item, dict)
        ]


class DuckDuckGoSearchProvider(SearchProvider):
    """DuckDuckGo text search; result pages are fetched for their text."""

    name = "duckduckgo"

    # Tags without useful text
    REMOVE_TAGS = ["script", "style", "noscript", "iframe", "svg"]

    def __init__(self, fetch_pages: bool = True):
        self.fetch_pages = fetch_pages

    async def search(self, query: str, limit: int) -> list[SearchHit]:
        try:
            # Run synchronous DDG search in thread pool
            results = await asyncio.to_thread(self._execute_search, query, limit)
        except DuckDuckGoSearchException as e:
            raise SearchQueryError(f"DuckDuckGo search failed for {query!r}: {e}") from e

        hits = [
            SearchHit(url=r.get("href", ""), title=r.get("title", ""), description=r.get("body", ""))
            for r in results
        ]
        if self.fetch_pages and hits:
            await self._fill_page_text(hits)
        return hits

    def _execute_search(self, query: str, limit: int) -> list[dict]:
        """Execute a DuckDuckGo search (synchronous)."""
        with DDGS() as ddgs:
            return list(ddgs.text(query, region="br-pt", max_results=limit))

    async def _fill_page_text(self, hits: list[SearchHit]) -> None:
        async with httpx.AsyncClient(
            timeout=settings.page_fetch_timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        ) as client:
            pages = await asyncio.gather(
                *(self._fetch_page(client, hit.url) for hit in hits)
            )
        for hit, html in zip(hits, pages):
            if html:
                hit.content = self.page_text(html)

    async def _fetch_page(self, client: httpx.AsyncClient, url: str) -> Optional[str]:
        if not url.startswith("http"):
            return None
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.debug(f"Page fetch failed for {url}: {e}")
            return None
        if response.status_code != 200 or "html" not in response.headers.get("content-type", ""):
            return None
        return response.text

    @classmethod
    def page_text(cls, html: str) -> str:
        """Visible text of an HTML page."""
        soup = BeautifulSoup(html, "lxml")
        for tag in cls.REMOVE_TAGS:
            for element in soup.find_all(tag):
                element.decompose()
        body = soup.find("body") or soup
        return " ".join(body.get_text(separator=" ").split())


class MockSearchProvider(SearchProvider):
    """Search provider returning canned hits for every query."""

    name = "mock"

    def __init__(
        self,
        hits: Optional[list[SearchHit]] = None,
        failing_queries: Optional[set[str]] = None,
        fail_all: bool = False,
    ):
        self.hits = hits if hits is not None else self._default_hits()
        self.failing_queries = failing_queries or set()
        self.fail_all = fail_all
        self.queries: list[str] = []

    async def search(self, query: str, limit: int) -> list[SearchHit]:
        self.queries.append(query)
        if self.fail_all or query in self.failing_queries:
            raise SearchQueryError(f"Mock search failed for {query!r}")
        return self.hits[:limit]

    def _default_hits(self) -> list[SearchHit]:
        return [
            SearchHit(
                url=f"https://cnpj.biz/{entity.cnpj}",
                title=f"{entity.legal_name} - CNPJ {format_cnpj(entity.cnpj)}",
                description=f"{entity.municipality}/{entity.region} situacao cadastral {entity.status}",
            )
            for entity in default_mock_entities()
        ]


SEARCH_PROVIDERS: dict[str, type[SearchProvider]] = {
    FirecrawlSearchProvider.name: FirecrawlSearchProvider,
    DuckDuckGoSearchProvider.name: DuckDuckGoSearchProvider,
    MockSearchProvider.name: MockSearchProvider,
}


def get_search_provider(name: Optional[str] = None) -> SearchProvider:
    """Instantiate the configured search provider."""
    name = (name or settings.search_provider).strip().lower()
    provider_cls = SEARCH_PROVIDERS.get(name)
    if provider_cls is None:
        raise SearchProviderUnavailable(f"Unknown search provider: {name}")
    return provider_cls()
