"""Named query execution with schema-less JSON serialization of the result set."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, runtime_checkable

from pydantic_core import PydanticSerializationError, to_json

from .errors import EmptyResultError, FetchError, InvalidParamsError

LOG = logging.getLogger(__name__)

CUSTOM_QUERY_MIN_PARAMS = 1


class NoRowsError(LookupError):
    """Signalled by a cursor when a scan finds no data."""


@runtime_checkable
class ResultCursor(Protocol):
    """Handle over the rows of an in-progress query."""

    def columns(self) -> Sequence[str]:
        """Return the result column names in backend order."""

    async def scan(self) -> Sequence[object] | None:
        """Return the next row's values, ``None`` once exhausted.

        Raises ``NoRowsError`` when the backend reports that no data was found.
        """

    async def close(self) -> None:
        """Release the cursor and anything it holds open."""


@runtime_checkable
class NamedQueryConnection(Protocol):
    """Connection capable of running pre-registered queries by name."""

    async def query_by_name(self, name: str, *args: object) -> ResultCursor: ...


def split_params(params: Sequence[str]) -> tuple[str, tuple[str, ...]]:
    """Separate the query name from its positional arguments."""

    if len(params) < CUSTOM_QUERY_MIN_PARAMS:
        raise InvalidParamsError("Invalid number of parameters: a query name is required.")
    return params[0], tuple(params[1:])


async def execute_named_query(connection: NamedQueryConnection, params: Sequence[str]) -> str:
    """Run the query named by ``params[0]`` and return its rows as a JSON array.

    Each row becomes an object keyed by column name, with columns in the order
    the cursor reports them. An exhausted cursor yields ``"[]"``; a cursor that
    raises ``NoRowsError`` yields ``EmptyResultError`` instead.
    """

    name, args = split_params(params)
    LOG.debug("Executing custom query", extra={"query": name, "args": len(args)})
    try:
        cursor = await connection.query_by_name(name, *args)
    except FetchError:
        raise
    except Exception as exc:
        raise FetchError(f"Cannot fetch data for query '{name}': {exc}") from exc

    try:
        result = await _serialize_rows(name, cursor)
    except BaseException:
        try:
            await cursor.close()
        except Exception:
            LOG.warning("Failed to close cursor", extra={"query": name}, exc_info=True)
        raise
    try:
        await cursor.close()
    except Exception as exc:
        raise FetchError(f"Cannot close cursor for query '{name}': {exc}") from exc
    return result


async def _serialize_rows(name: str, cursor: ResultCursor) -> str:
    try:
        columns = tuple(cursor.columns())
    except Exception as exc:
        raise FetchError(f"Cannot fetch data for query '{name}': {exc}") from exc

    data: list[str] = []
    while True:
        try:
            values = await cursor.scan()
        except NoRowsError as exc:
            raise EmptyResultError(f"Empty result for query '{name}'") from exc
        except Exception as exc:
            raise FetchError(f"Cannot fetch data for query '{name}': {exc}") from exc
        if values is None:
            break
        data.append(_encode_row(name, columns, values))
    return "[" + ",".join(data) + "]"


def _encode_row(name: str, columns: tuple[str, ...], values: Sequence[object]) -> str:
    if len(values) != len(columns):
        raise FetchError(
            f"Cannot fetch data for query '{name}': row has {len(values)} values for {len(columns)} columns"
        )
    row = dict(zip(columns, values))
    try:
        encoded = to_json(row, bytes_mode="base64", inf_nan_mode="null")
    except PydanticSerializationError as exc:
        raise FetchError(f"Cannot encode row for query '{name}': {exc}") from exc
    return encoded.decode("utf-8").strip()


__all__ = [
    "CUSTOM_QUERY_MIN_PARAMS",
    "NamedQueryConnection",
    "NoRowsError",
    "ResultCursor",
    "execute_named_query",
    "split_params",
]
