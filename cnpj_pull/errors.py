"""Exceptions raised by the discovery pipeline."""

from typing import Optional


class DiscoveryError(Exception):
    """Base class for pipeline errors."""


class FilterValidationError(DiscoveryError, ValueError):
    """Required filter fields are missing."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required filters: {', '.join(self.missing)}")


class InvalidIdentifierError(DiscoveryError, ValueError):
    """The value is not a well-formed CNPJ."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid CNPJ: {value!r}")


class IdentifierNotFoundError(DiscoveryError):
    """No registry provider returned data for the CNPJ."""

    def __init__(self, cnpj: str):
        self.cnpj = cnpj
        super().__init__(f"CNPJ not found: {cnpj}")


class SearchProviderUnavailable(DiscoveryError):
    """The discovery search source is not configured or not reachable."""


class TransportError(DiscoveryError):
    """The discovery stream could not be read."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SearchQueryError(DiscoveryError):
    """A single search query failed."""
