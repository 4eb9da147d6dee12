# src/storage/price_store.py

"""SQLite-backed store of one price summary per catalog item."""

import asyncio
import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from src.config.settings import Settings
from src.models.game import Game
from src.models.price_summary import PriceSummary
from src.storage.database import table_columns

logger = logging.getLogger("price_sweep.price_store")


@dataclass(frozen=True)
class PriceTable:
    """Where one game's summaries live and which catalog row they price."""

    name: str
    key_column: str
    catalog_table: str
    catalog_key: str
    default_key_type: str = "TEXT"


PRICE_TABLES: dict[Game, PriceTable] = {
    Game.POKEMON: PriceTable(
        "tcg_card_prices_ebay", "cardid", "tcg_cards", "id",
    ),
    Game.YGO: PriceTable(
        "ygo_card_prices_ebay", "card_id", "ygo_cards", "card_id",
    ),
    Game.MTG: PriceTable(
        "mtg_card_prices_ebay", "id", "mtg_cards", "id",
    ),
}

_TABLE_TEMPLATE = """\
CREATE TABLE IF NOT EXISTS {table} (
    {key}        {key_type} PRIMARY KEY{reference},
    currency     TEXT    NOT NULL DEFAULT 'USD',
    low          REAL,
    median       REAL,
    high         REAL,
    sample_count INTEGER NOT NULL DEFAULT 0,
    method       TEXT    NOT NULL DEFAULT 'active_listings',
    query        TEXT    NOT NULL,
    last_run     TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL
)
"""

_UPSERT_TEMPLATE = (
    "INSERT INTO {table} "
    "({key}, currency, low, median, high, sample_count, method, "
    " query, last_run, updated_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
    "ON CONFLICT({key}) DO UPDATE SET "
    "currency=excluded.currency, "
    "low=excluded.low, "
    "median=excluded.median, "
    "high=excluded.high, "
    "sample_count=excluded.sample_count, "
    "method=excluded.method, "
    "query=excluded.query, "
    "last_run=excluded.last_run, "
    "updated_at=excluded.updated_at"
)

_TRANSIENT_MARKERS = ("database is locked", "database is busy")


def utc_now() -> datetime:
    """Current UTC time, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 text that sorts chronologically for UTC values."""
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


class PriceStore:
    """Idempotent per-item price summaries, one table per game.

    Writes run in a worker thread under a connection lock, so concurrent
    workers may upsert different keys safely.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._conn = conn
        self._now = now or utc_now
        self._lock = threading.Lock()

    # ── Schema ───────────────────────────────────────────

    def _table_ddl(self, target: PriceTable) -> str:
        catalog = table_columns(self._conn, target.catalog_table)
        key_info = catalog.get(target.catalog_key)
        key_type = (
            key_info.declared_type if key_info and key_info.declared_type
            else target.default_key_type
        )
        reference = ""
        if key_info is not None and key_info.is_primary_key:
            reference = (
                f" REFERENCES {target.catalog_table}({target.catalog_key})"
                " ON DELETE CASCADE"
            )
        return _TABLE_TEMPLATE.format(
            table=target.name,
            key=target.key_column,
            key_type=key_type,
            reference=reference,
        )

    def ensure_tables(self) -> None:
        """Create every game's price table when it does not exist yet."""
        with self._lock:
            for game, target in PRICE_TABLES.items():
                self._conn.execute(self._table_ddl(target))
                logger.debug(
                    "Ensured %s for %s", target.name, game.value,
                )
            self._conn.commit()

    # ── Writes ───────────────────────────────────────────

    def upsert_sync(
        self, game: Game, item_key: Any, summary: PriceSummary, query: str,
    ) -> None:
        """Insert or overwrite the summary row for ``item_key``."""
        target = PRICE_TABLES[game]
        ts = format_timestamp(self._now())
        sql = _UPSERT_TEMPLATE.format(
            table=target.name, key=target.key_column,
        )
        params = (
            item_key,
            summary.currency,
            summary.low,
            summary.median,
            summary.high,
            summary.sample_count,
            summary.method,
            query,
            ts,
            ts,
        )

        attempts = Settings.DB_LOCK_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                with self._lock:
                    self._conn.execute(sql, params)
                    self._conn.commit()
                break
            except sqlite3.OperationalError as exc:
                transient = any(
                    m in str(exc).lower() for m in _TRANSIENT_MARKERS
                )
                if not transient or attempt == attempts:
                    raise
                logger.warning(
                    "Transient write error for %s %s (attempt %d): %s",
                    game.value,
                    item_key,
                    attempt,
                    exc,
                )
                time.sleep(0.2 * attempt)

        logger.debug(
            "Upserted %s %s: samples=%d",
            target.name,
            item_key,
            summary.sample_count,
        )

    async def upsert(
        self, game: Game, item_key: Any, summary: PriceSummary, query: str,
    ) -> None:
        """Async wrapper running :meth:`upsert_sync` in a worker thread."""
        await asyncio.to_thread(
            self.upsert_sync, game, item_key, summary, query,
        )

    # ── Reads ────────────────────────────────────────────

    def get_summary(self, game: Game, item_key: Any) -> PriceSummary | None:
        """Read back the stored summary for ``item_key``, if any."""
        target = PRICE_TABLES[game]
        with self._lock:
            row = self._conn.execute(
                f"SELECT {target.key_column}, currency, low, median, high, "
                "       sample_count, method, query, last_run, updated_at "
                f"FROM {target.name} WHERE {target.key_column} = ?",
                (item_key,),
            ).fetchone()
        if row is None:
            return None
        return PriceSummary(
            item_key=row[0],
            currency=row[1],
            low=row[2],
            median=row[3],
            high=row[4],
            sample_count=row[5],
            method=row[6],
            query=row[7],
            last_run=datetime.fromisoformat(row[8]),
            updated_at=datetime.fromisoformat(row[9]),
        )

    def count(self, game: Game) -> int:
        """Number of summary rows stored for ``game``."""
        target = PRICE_TABLES[game]
        with self._lock:
            row = self._conn.execute(
                f"SELECT COUNT(*) FROM {target.name}"
            ).fetchone()
        return int(row[0])
