"""Candidate discovery: query fan-out, web search and CNPJ extraction."""

from .queries import build_queries, synonyms_for, STATE_NAMES, SEGMENT_SYNONYMS
from .extractor import CNPJ_PATTERN, IdentifierExtractor
from .search import (
    SearchHit,
    SearchProvider,
    FirecrawlSearchProvider,
    DuckDuckGoSearchProvider,
    MockSearchProvider,
    get_search_provider,
)

__all__ = [
    "build_queries",
    "synonyms_for",
    "STATE_NAMES",
    "SEGMENT_SYNONYMS",
    "CNPJ_PATTERN",
    "IdentifierExtractor",
    "SearchHit",
    "SearchProvider",
    "FirecrawlSearchProvider",
    "DuckDuckGoSearchProvider",
    "MockSearchProvider",
    "get_search_provider",
]
