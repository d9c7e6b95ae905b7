"""Collector entry points composing configuration, TLS and query execution."""

from __future__ import annotations

import logging
import ssl
from typing import Any, Awaitable, Callable, Sequence

import asyncpg

from .config import AppConfig, SessionConfig
from .connections import AsyncpgNamedQueryConnection
from .errors import FetchError
from .queries import QueryRegistry
from .query import execute_named_query, split_params
from .tlsconfig import CONNECT_REQUIRED, TLSSessionConfig, create_tls_config

LOG = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]


class Collector:
    """Runs custom queries against configured sessions."""

    def __init__(
        self,
        config: AppConfig,
        *,
        registry: QueryRegistry | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._config = config
        self._registry = registry if registry is not None else QueryRegistry.from_directory(config.custom_queries_path)
        self._connector = connector or asyncpg.connect

    @property
    def registry(self) -> QueryRegistry:
        return self._registry

    def tls_config_for(self, session: SessionConfig) -> TLSSessionConfig | None:
        """Build the TLS configuration for ``session`` when it uses credential files."""

        details = session.credential_details()
        if not details.has_tls_files:
            return None
        return create_tls_config(details, session.tls_skip_verify)

    async def custom_query(self, session_name: str, params: Sequence[str]) -> str:
        """Execute a named custom query on ``session_name`` and return its JSON rows."""

        split_params(params)
        session = self._config.session(session_name)
        kwargs = self._connect_kwargs(session)
        try:
            raw = await self._connector(**kwargs)
        except Exception as exc:
            raise FetchError(f"Failed to connect to session '{session.name}': {exc}") from exc
        connection = AsyncpgNamedQueryConnection(raw, self._registry, timeout=self._config.call_timeout)
        try:
            return await execute_named_query(connection, params)
        finally:
            try:
                await connection.close()
            except Exception:  # pragma: no cover - best effort cleanup
                LOG.debug("Failed to close connection", extra={"session": session.name}, exc_info=True)

    def _connect_kwargs(self, session: SessionConfig) -> dict[str, object]:
        kwargs: dict[str, object] = {"dsn": session.uri, "timeout": self._config.call_timeout}
        if session.user:
            kwargs["user"] = session.user
        if session.password:
            kwargs["password"] = session.password
        ssl_option = self._ssl_option(session)
        if ssl_option is not None:
            kwargs["ssl"] = ssl_option
        return kwargs

    def _ssl_option(self, session: SessionConfig) -> ssl.SSLContext | str | None:
        details = session.credential_details()
        if details.uses_wallet:
            LOG.debug("Session credentials come from a wallet", extra={"session": session.name})
            return None
        tls = self.tls_config_for(session)
        if tls is not None:
            return tls.context
        if details.tls_connect == CONNECT_REQUIRED:
            return "require"
        return None


__all__ = ["Collector", "Connector"]
