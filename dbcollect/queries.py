"""Registry of custom SQL queries loaded from ``*.sql`` files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Mapping

from .errors import QueryNotFoundError

LOG = logging.getLogger(__name__)

SQL_EXTENSION = ".sql"


class QueryRegistry:
    """Maps query names (file stems) to SQL text."""

    def __init__(self, queries: Mapping[str, str] | None = None) -> None:
        self._queries: dict[str, str] = dict(queries or {})

    @classmethod
    def from_directory(cls, path: str | Path | None) -> QueryRegistry:
        """Load every ``*.sql`` file in ``path``; a missing directory yields an empty registry."""

        registry = cls()
        if not path:
            return registry
        directory = Path(path).expanduser()
        if not directory.is_dir():
            LOG.warning("Custom queries path is not a directory", extra={"path": str(directory)})
            return registry
        for entry in sorted(directory.glob(f"*{SQL_EXTENSION}")):
            if not entry.is_file():
                continue
            try:
                registry.register(entry.stem, entry.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError):
                LOG.warning("Skipping unreadable query file", extra={"path": str(entry)}, exc_info=True)
        LOG.debug("Loaded custom queries", extra={"path": str(directory), "count": len(registry)})
        return registry

    def register(self, name: str, sql: str) -> None:
        statement = sql.strip()
        if not statement:
            raise ValueError(f"Query '{name}' is empty")
        self._queries[name] = statement

    def get(self, name: str) -> str:
        try:
            return self._queries[name]
        except KeyError:
            raise QueryNotFoundError(f"cannot find query '{name}'") from None

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._queries))

    def __contains__(self, name: object) -> bool:
        return name in self._queries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._queries)


__all__ = ["QueryRegistry", "SQL_EXTENSION"]
