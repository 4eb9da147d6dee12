# src/storage/database.py

"""SQLite connections and schema introspection helpers."""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from src.providers.errors import ConfigurationError

logger = logging.getLogger("price_sweep.database")

_SQLITE_PREFIX = "sqlite:///"
_MEMORY = ":memory:"
# Named shared-cache database so reader and writer connections meet
_SHARED_MEMORY_URI = "file:price_sweep?mode=memory&cache=shared"


@dataclass(frozen=True)
class ColumnInfo:
    """Declared shape of one table column."""

    name: str
    declared_type: str
    is_primary_key: bool


def resolve_database_path(url: str | None) -> str:
    """Turn a connection string into a SQLite path (or ``:memory:``).

    Accepts ``sqlite:///<path>``, ``sqlite:///:memory:`` and bare paths.
    """
    if not url or not url.strip():
        raise ConfigurationError("DATABASE_URL is required")
    url = url.strip()
    if url.startswith(_SQLITE_PREFIX):
        path = url[len(_SQLITE_PREFIX):]
    elif "://" in url:
        scheme = url.split("://", 1)[0]
        raise ConfigurationError(
            f"Unsupported DATABASE_URL scheme '{scheme}' "
            "(expected sqlite:///<path>)"
        )
    else:
        path = url
    if not path:
        raise ConfigurationError("DATABASE_URL has an empty path")
    return path


def connect(url: str | None) -> sqlite3.Connection:
    """Open a connection configured for concurrent async use."""
    path = resolve_database_path(url)
    if path == _MEMORY:
        conn = sqlite3.connect(
            _SHARED_MEMORY_URI, uri=True, check_same_thread=False,
        )
    else:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.row_factory = sqlite3.Row
    logger.debug("Opened database at %s", path)
    return conn


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """True when ``table`` (or a view of that name) exists."""
    row = conn.execute(
        "SELECT 1 FROM sqlite_master "
        "WHERE type IN ('table', 'view') AND name = ? LIMIT 1",
        (table,),
    ).fetchone()
    return row is not None


def table_columns(
    conn: sqlite3.Connection, table: str,
) -> dict[str, ColumnInfo]:
    """Columns of ``table`` keyed by name; empty when it is absent."""
    if not table_exists(conn, table):
        return {}
    quoted = table.replace('"', '""')
    rows = conn.execute(f'PRAGMA table_info("{quoted}")').fetchall()
    return {
        r[1]: ColumnInfo(
            name=r[1],
            declared_type=(r[2] or "").upper(),
            is_primary_key=bool(r[5]),
        )
        for r in rows
    }


def quote_ident(name: str) -> str:
    """Quote an identifier such as ``set.id`` for use in SQL."""
    return '"' + name.replace('"', '""') + '"'
