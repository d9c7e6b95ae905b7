"""Error types surfaced by the collector."""

from __future__ import annotations


class CollectorError(RuntimeError):
    """Base class for every collector failure."""


class ConfigError(CollectorError):
    """Raised when credential or session configuration is invalid or contradictory."""


class CredentialIOError(CollectorError):
    """Raised when a certificate or key file cannot be read."""


class CredentialParseError(CollectorError):
    """Raised when certificate or key material is malformed or mismatched."""


class InvalidParamsError(CollectorError):
    """Raised when a caller supplies fewer parameters than a query requires."""


class FetchError(CollectorError):
    """Raised when a query cannot be executed or its rows cannot be read."""


class QueryNotFoundError(FetchError):
    """Raised when no custom query is registered under the requested name."""


class EmptyResultError(CollectorError):
    """Raised when a query ran successfully but the backend reported no rows."""


__all__ = [
    "CollectorError",
    "ConfigError",
    "CredentialIOError",
    "CredentialParseError",
    "EmptyResultError",
    "FetchError",
    "InvalidParamsError",
    "QueryNotFoundError",
]
