"""Tests for the asyncpg named query adapter."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from dbcollect.connections import AsyncpgNamedQueryConnection, coerce_params
from dbcollect.errors import CollectorError, FetchError, QueryNotFoundError
from dbcollect.queries import QueryRegistry
from dbcollect.query import execute_named_query


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@dataclass(frozen=True)
class _Type:
    name: str


@dataclass(frozen=True)
class _Attribute:
    name: str


class _Record(dict):
    pass


class _FakeTransaction:
    def __init__(self, rollback_error: Exception | None = None) -> None:
        self.started = False
        self.rolled_back = False
        self.rollback_error = rollback_error

    async def start(self) -> None:
        self.started = True

    async def rollback(self) -> None:
        self.rolled_back = True
        if self.rollback_error is not None:
            raise self.rollback_error


class _FakeCursor:
    def __init__(self, records: list[_Record], fetch_error: Exception | None = None) -> None:
        self._records = records
        self.fetch_error = fetch_error
        self.fetch_sizes: list[int] = []
        self.timeouts: list[float | None] = []

    async def fetch(self, n: int, *, timeout: float | None = None) -> list[_Record]:
        self.fetch_sizes.append(n)
        self.timeouts.append(timeout)
        if self.fetch_error is not None:
            raise self.fetch_error
        batch, self._records = self._records[:n], self._records[n:]
        return batch


class _FakeStatement:
    def __init__(self, columns: tuple[str, ...], params: tuple[str, ...], records: list[_Record]) -> None:
        self._columns = columns
        self._params = params
        self.cursor_obj = _FakeCursor(records)
        self.cursor_args: tuple[object, ...] | None = None

    def get_attributes(self) -> tuple[_Attribute, ...]:
        return tuple(_Attribute(name) for name in self._columns)

    def get_parameters(self) -> tuple[_Type, ...]:
        return tuple(_Type(name) for name in self._params)

    async def cursor(self, *args: object, timeout: float | None = None) -> _FakeCursor:
        self.cursor_args = args
        return self.cursor_obj


class _FakeConnection:
    def __init__(
        self,
        statement: _FakeStatement | None = None,
        *,
        prepare_error: Exception | None = None,
        rollback_error: Exception | None = None,
    ) -> None:
        self.statement = statement
        self.prepare_error = prepare_error
        self.rollback_error = rollback_error
        self.transactions: list[_FakeTransaction] = []
        self.prepared: list[str] = []
        self.closed = False

    def transaction(self, *, readonly: bool = False) -> _FakeTransaction:
        assert readonly is True
        tx = _FakeTransaction(self.rollback_error)
        self.transactions.append(tx)
        return tx

    async def prepare(self, sql: str, *, timeout: float | None = None) -> _FakeStatement:
        self.prepared.append(sql)
        if self.prepare_error is not None:
            raise self.prepare_error
        assert self.statement is not None
        return self.statement

    async def close(self) -> None:
        self.closed = True


def _records(*rows: dict[str, object]) -> list[_Record]:
    return [_Record(row) for row in rows]


@pytest.mark.anyio
async def test_runs_registered_query_through_serializer() -> None:
    statement = _FakeStatement(
        ("usename", "sessions"),
        ("text", "int4"),
        _records({"usename": "alice", "sessions": 3}, {"usename": "bob", "sessions": 1}),
    )
    raw = _FakeConnection(statement)
    registry = QueryRegistry({"by_user": "SELECT usename, count(*) FROM pg_stat_activity WHERE usename = $1 LIMIT $2"})
    connection = AsyncpgNamedQueryConnection(raw, registry, prefetch=1)  # type: ignore[arg-type]

    result = await execute_named_query(connection, ["by_user", "alice", "5"])

    assert result == '[{"usename":"alice","sessions":3},{"usename":"bob","sessions":1}]'
    assert statement.cursor_args == ("alice", 5)
    assert raw.transactions[0].started is True
    assert raw.transactions[0].rolled_back is True
    assert statement.cursor_obj.fetch_sizes == [1, 1, 1]


@pytest.mark.anyio
async def test_unknown_query_does_not_open_transaction() -> None:
    raw = _FakeConnection()
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry())  # type: ignore[arg-type]

    with pytest.raises(QueryNotFoundError):
        await connection.query_by_name("missing")

    assert raw.transactions == []


@pytest.mark.anyio
async def test_prepare_failure_rolls_back() -> None:
    raw = _FakeConnection(prepare_error=RuntimeError("relation does not exist"))
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry({"q": "SELECT * FROM nope"}))  # type: ignore[arg-type]

    with pytest.raises(FetchError):
        await execute_named_query(connection, ["q"])

    assert raw.transactions[0].rolled_back is True


@pytest.mark.anyio
async def test_empty_result_returns_empty_array() -> None:
    statement = _FakeStatement(("n",), (), [])
    raw = _FakeConnection(statement)
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry({"q": "SELECT 1 AS n WHERE false"}))  # type: ignore[arg-type]

    assert await execute_named_query(connection, ["q"]) == "[]"
    assert raw.transactions[0].rolled_back is True


@pytest.mark.anyio
async def test_fetch_receives_configured_timeout() -> None:
    statement = _FakeStatement(("n",), (), _records({"n": 1}))
    raw = _FakeConnection(statement)
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry({"q": "SELECT 1 AS n"}), timeout=2.0)  # type: ignore[arg-type]

    await execute_named_query(connection, ["q"])

    assert statement.cursor_obj.timeouts
    assert set(statement.cursor_obj.timeouts) == {2.0}


@pytest.mark.anyio
async def test_rollback_failure_keeps_scan_error() -> None:
    statement = _FakeStatement(("n",), (), [])
    statement.cursor_obj.fetch_error = ConnectionResetError("connection reset mid-scan")
    raw = _FakeConnection(statement, rollback_error=ConnectionResetError("connection was closed"))
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry({"q": "SELECT 1 AS n"}))  # type: ignore[arg-type]

    with pytest.raises(CollectorError) as excinfo:
        await execute_named_query(connection, ["q"])

    assert isinstance(excinfo.value, FetchError)
    assert "mid-scan" in str(excinfo.value)
    assert raw.transactions[0].rolled_back is True


@pytest.mark.anyio
async def test_rollback_failure_after_success_is_fetch_error() -> None:
    statement = _FakeStatement(("n",), (), _records({"n": 1}))
    raw = _FakeConnection(statement, rollback_error=ConnectionResetError("connection was closed"))
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry({"q": "SELECT 1 AS n"}))  # type: ignore[arg-type]

    with pytest.raises(FetchError, match="connection was closed"):
        await execute_named_query(connection, ["q"])


@pytest.mark.anyio
async def test_rollback_failure_keeps_prepare_error() -> None:
    raw = _FakeConnection(
        prepare_error=RuntimeError("relation does not exist"),
        rollback_error=ConnectionResetError("connection was closed"),
    )
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry({"q": "SELECT * FROM nope"}))  # type: ignore[arg-type]

    with pytest.raises(FetchError, match="relation does not exist"):
        await execute_named_query(connection, ["q"])


@pytest.mark.anyio
async def test_close_closes_underlying_connection() -> None:
    raw = _FakeConnection()
    connection = AsyncpgNamedQueryConnection(raw, QueryRegistry())  # type: ignore[arg-type]

    await connection.close()

    assert raw.closed is True


def test_coerce_params_uses_statement_types() -> None:
    types = (_Type("int8"), _Type("float8"), _Type("numeric"), _Type("bool"), _Type("text"))

    result = coerce_params(types, ("42", "0.5", "1.10", "yes", "plain"))

    assert result == (42, 0.5, Decimal("1.10"), True, "plain")


def test_coerce_params_rejects_bad_values() -> None:
    with pytest.raises(FetchError):
        coerce_params((_Type("int4"),), ("abc",))
    with pytest.raises(FetchError):
        coerce_params((_Type("bool"),), ("maybe",))


def test_coerce_params_checks_arity() -> None:
    with pytest.raises(FetchError, match="expects 1 parameter"):
        coerce_params((_Type("int4"),), ())
