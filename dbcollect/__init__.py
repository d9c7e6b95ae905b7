"""Database monitoring collector: TLS session setup and named-query JSON export."""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import (
    CollectorError,
    ConfigError,
    CredentialIOError,
    CredentialParseError,
    EmptyResultError,
    FetchError,
    InvalidParamsError,
    QueryNotFoundError,
)
from .query import NamedQueryConnection, NoRowsError, ResultCursor, execute_named_query
from .tlsconfig import (
    ClientCertificate,
    ConnectionCredentialDetails,
    TLSSessionConfig,
    create_details,
    create_details_with_wallet,
    create_tls_config,
)

__all__ = [
    "ClientCertificate",
    "CollectorError",
    "ConfigError",
    "ConnectionCredentialDetails",
    "CredentialIOError",
    "CredentialParseError",
    "EmptyResultError",
    "FetchError",
    "InvalidParamsError",
    "NamedQueryConnection",
    "NoRowsError",
    "QueryNotFoundError",
    "ResultCursor",
    "TLSSessionConfig",
    "__version__",
    "create_details",
    "create_details_with_wallet",
    "create_tls_config",
    "execute_named_query",
]
