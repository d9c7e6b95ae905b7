"""Tests for the custom query registry."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbcollect.errors import FetchError, QueryNotFoundError
from dbcollect.queries import QueryRegistry


def test_loads_sql_files_by_stem(tmp_path: Path) -> None:
    (tmp_path / "sessions.sql").write_text("SELECT count(*) AS n FROM pg_stat_activity\n")
    (tmp_path / "by_user.sql").write_text("SELECT usename FROM pg_stat_activity WHERE usename = $1")
    (tmp_path / "notes.txt").write_text("ignored")

    registry = QueryRegistry.from_directory(tmp_path)

    assert registry.names() == ("by_user", "sessions")
    assert registry.get("sessions") == "SELECT count(*) AS n FROM pg_stat_activity"
    assert "notes" not in registry
    assert len(registry) == 2


def test_missing_directory_yields_empty_registry(tmp_path: Path) -> None:
    registry = QueryRegistry.from_directory(tmp_path / "absent")

    assert len(registry) == 0


def test_unset_path_yields_empty_registry() -> None:
    assert list(QueryRegistry.from_directory(None)) == []


def test_unknown_query_raises_fetch_error() -> None:
    registry = QueryRegistry({"known": "SELECT 1"})

    with pytest.raises(QueryNotFoundError) as excinfo:
        registry.get("missing")

    assert isinstance(excinfo.value, FetchError)
    assert "missing" in str(excinfo.value)


def test_register_rejects_empty_sql() -> None:
    registry = QueryRegistry()

    with pytest.raises(ValueError):
        registry.register("blank", "   ")
