"""HTTP client for the discovery API."""

import logging
from typing import AsyncIterator, Optional

import httpx

from cnpj_pull.config import settings
from cnpj_pull.errors import (
    FilterValidationError,
    IdentifierNotFoundError,
    InvalidIdentifierError,
    TransportError,
)
from cnpj_pull.models import FilterSet, ResolvedEntity
from cnpj_pull.models.events import FrameDecoder

logger = logging.getLogger(__name__)


class DiscoveryClient:
    """Reads discovery runs and single lookups from the API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        use_mock: bool = False,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = client
        self.use_mock = use_mock

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            # Streams stay open for the whole run; no read timeout
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(settings.search_timeout, read=None),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def stream(self, filters: FilterSet) -> AsyncIterator:
        """Yield decoded events of one discovery run."""
        payload = {
            "segment": filters.segment,
            "region": filters.region,
            "city": filters.city,
            "size_bands": list(filters.size_bands),
            "limit": filters.limit,
            "streaming": True,
            "use_mock": self.use_mock,
        }
        async with self._http().stream("POST", "/api/discover", json=payload) as response:
            if response.status_code == 422:
                await response.aread()
                try:
                    body = response.json()
                except ValueError:
                    raise TransportError(
                        "Request rejected with an unreadable body", status_code=422
                    )
                detail = body.get("detail") if isinstance(body, dict) else body
                missing = detail.get("missing") if isinstance(detail, dict) else None
                if missing:
                    raise FilterValidationError(missing)
                raise TransportError(f"Request rejected: {detail}", status_code=422)
            if response.status_code != 200:
                raise TransportError(
                    f"Discovery request failed with HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            decoder = FrameDecoder()
            async for chunk in response.aiter_text():
                for event in decoder.feed(chunk):
                    yield event

    async def lookup(self, identifier: str) -> ResolvedEntity:
        """Resolve one CNPJ through the API."""
        response = await self._http().get(
            f"/api/registry/{identifier}", params={"use_mock": self.use_mock}
        )
        if response.status_code == 400:
            raise InvalidIdentifierError(identifier)
        if response.status_code == 404:
            raise IdentifierNotFoundError(identifier)
        if response.status_code == 429:
            raise TransportError("Rate limit exceeded", status_code=429)
        if response.status_code != 200:
            raise TransportError(
                f"Lookup failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return ResolvedEntity.model_validate(response.json())
