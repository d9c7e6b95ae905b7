"""asyncpg-backed implementation of the named-query connection capability."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Sequence

import asyncpg

from .errors import FetchError
from .queries import QueryRegistry

LOG = logging.getLogger(__name__)

_INT_TYPES = {"int2", "int4", "int8", "oid"}
_FLOAT_TYPES = {"float4", "float8"}
_BOOL_TRUE = {"true", "t", "yes", "y", "on", "1"}
_BOOL_FALSE = {"false", "f", "no", "n", "off", "0"}


class AsyncpgResultCursor:
    """Cursor over a prepared statement, scoped to its own transaction."""

    def __init__(
        self,
        transaction: Any,
        statement: Any,
        cursor: Any,
        *,
        prefetch: int,
        timeout: float | None = None,
    ) -> None:
        self._transaction = transaction
        self._statement = statement
        self._cursor = cursor
        self._prefetch = prefetch
        self._timeout = timeout
        self._buffer: list[Any] = []
        self._exhausted = False
        self._closed = False

    def columns(self) -> Sequence[str]:
        return tuple(attribute.name for attribute in self._statement.get_attributes())

    async def scan(self) -> Sequence[object] | None:
        if not self._buffer and not self._exhausted:
            records = await self._cursor.fetch(self._prefetch, timeout=self._timeout)
            if len(records) < self._prefetch:
                self._exhausted = True
            self._buffer.extend(records)
        if not self._buffer:
            return None
        record = self._buffer.pop(0)
        return tuple(record.values())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._transaction.rollback()


class AsyncpgNamedQueryConnection:
    """Runs registry queries on an open asyncpg connection."""

    def __init__(
        self,
        connection: asyncpg.Connection,
        registry: QueryRegistry,
        *,
        timeout: float | None = None,
        prefetch: int = 50,
    ) -> None:
        self._connection = connection
        self._registry = registry
        self._timeout = timeout
        self._prefetch = prefetch

    async def query_by_name(self, name: str, *args: object) -> AsyncpgResultCursor:
        sql = self._registry.get(name)
        transaction = self._connection.transaction(readonly=True)
        await transaction.start()
        try:
            statement = await self._connection.prepare(sql, timeout=self._timeout)
            params = coerce_params(statement.get_parameters(), args)
            cursor = await statement.cursor(*params, timeout=self._timeout)
        except BaseException:
            try:
                await transaction.rollback()
            except Exception:
                LOG.warning("Failed to roll back custom query", extra={"query": name}, exc_info=True)
            raise
        LOG.debug("Opened cursor for custom query", extra={"query": name})
        return AsyncpgResultCursor(transaction, statement, cursor, prefetch=self._prefetch, timeout=self._timeout)

    async def close(self) -> None:
        await self._connection.close()


def coerce_params(types: Sequence[Any], args: Sequence[object]) -> tuple[object, ...]:
    """Convert textual arguments to the native types the statement expects."""

    if len(args) != len(types):
        raise FetchError(f"query expects {len(types)} parameter(s), got {len(args)}")
    return tuple(_coerce(arg, getattr(pg_type, "name", "")) for pg_type, arg in zip(types, args))


def _coerce(value: object, type_name: str) -> object:
    if not isinstance(value, str):
        return value
    try:
        if type_name in _INT_TYPES:
            return int(value)
        if type_name in _FLOAT_TYPES:
            return float(value)
        if type_name == "numeric":
            return Decimal(value)
    except (ValueError, InvalidOperation) as exc:
        raise FetchError(f"cannot convert {value!r} to {type_name}") from exc
    if type_name == "bool":
        lowered = value.strip().lower()
        if lowered in _BOOL_TRUE:
            return True
        if lowered in _BOOL_FALSE:
            return False
        raise FetchError(f"cannot convert {value!r} to bool")
    return value


__all__ = ["AsyncpgNamedQueryConnection", "AsyncpgResultCursor", "coerce_params"]
