"""Registry resolution: providers, cache and resolver."""

from .cache import CacheEntry, ResolutionCache
from .providers import (
    RegistryProvider,
    BrasilAPIProvider,
    MinhaReceitaProvider,
    CNPJWsProvider,
    build_providers,
)
from .mock import MockRegistryProvider, default_mock_entities
from .resolver import RegistryResolver, Resolution

__all__ = [
    "CacheEntry",
    "ResolutionCache",
    "RegistryProvider",
    "BrasilAPIProvider",
    "MinhaReceitaProvider",
    "CNPJWsProvider",
    "build_providers",
    "MockRegistryProvider",
    "default_mock_entities",
    "RegistryResolver",
    "Resolution",
]
