# src/storage/catalog_reader.py

"""Schema-tolerant streaming of catalog items for each game.

Each catalog is inspected once (table presence, optional columns, joinable
set tables) and the outcome is frozen into a :class:`CatalogPlan`.  The
plan's SQL is then reused for the rest of the run, so a catalog that
lacks an optional column simply yields ``None`` for it.
"""

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from src.models.catalog_item import CatalogItem
from src.models.game import Game
from src.storage.database import quote_ident, table_columns
from src.storage.price_store import (
    PRICE_TABLES,
    format_timestamp,
    utc_now,
)

logger = logging.getLogger("price_sweep.catalog")

_FETCH_SIZE = 500


class SetSource(Enum):
    """Where an item's set / collection description comes from."""

    COLUMN = "column"      # set name stored on the card row
    JOIN = "join"          # set name joined from a sets table
    ID_ONLY = "id_only"    # only a set identifier or code is known
    NONE = "none"          # no set information at all


@dataclass(frozen=True)
class CatalogPlan:
    """Fixed query shape for one game, decided at inspection time."""

    game: Game
    table: str
    key_column: str
    set_source: SetSource
    number_column: str | None = None
    sql: str = ""
    filters_stale: bool = False

    @property
    def available(self) -> bool:
        return bool(self.sql)


def _select(
    key: str,
    name_expr: str,
    set_id_expr: str = "NULL",
    set_name_expr: str = "NULL",
    set_code_expr: str = "NULL",
    number_expr: str = "NULL",
) -> str:
    return (
        f"SELECT c.{key} AS id, {name_expr} AS name, "
        f"{set_id_expr} AS set_id, {set_name_expr} AS set_name, "
        f"{set_code_expr} AS set_code, {number_expr} AS number"
    )


class CatalogReader:
    """Stream :class:`CatalogItem` rows from the three game catalogs."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        fetch_size: int = _FETCH_SIZE,
    ) -> None:
        self._conn = conn
        self.fetch_size = fetch_size
        self._plans: dict[tuple[Game, bool], CatalogPlan] = {}

    # ── Probing ──────────────────────────────────────────

    def _unavailable(
        self, game: Game, table: str, key: str, reason: str,
    ) -> CatalogPlan:
        logger.warning(
            "[%s] catalog unavailable: %s", game.label, reason,
        )
        return CatalogPlan(
            game=game,
            table=table,
            key_column=key,
            set_source=SetSource.NONE,
        )

    def _inspect_pokemon(self) -> tuple[CatalogPlan, str, str]:
        game, table, key = Game.POKEMON, "tcg_cards", "id"
        cols = table_columns(self._conn, table)
        if key not in cols:
            return self._unavailable(
                game, table, key, f"{table}.{key} not found",
            ), "", ""

        set_col: str | None = None
        if "set_id" in cols:
            set_col = "c.set_id"
        elif "set.id" in cols:
            set_col = "c." + quote_ident("set.id")

        sets = table_columns(self._conn, "tcg_sets")
        joins = ""
        if "set_name" in cols:
            source, set_name_expr = SetSource.COLUMN, "c.set_name"
        elif set_col and "id" in sets and "name" in sets:
            source, set_name_expr = SetSource.JOIN, "s.name"
            joins = f" LEFT JOIN tcg_sets s ON s.id = {set_col}"
        elif set_col:
            source, set_name_expr = SetSource.ID_ONLY, "NULL"
        else:
            source, set_name_expr = SetSource.NONE, "NULL"

        select = _select(
            key,
            "c.name" if "name" in cols else "NULL",
            set_id_expr=f"CAST({set_col} AS TEXT)" if set_col else "NULL",
            set_name_expr=set_name_expr,
        )
        plan = CatalogPlan(
            game=game, table=table, key_column=key, set_source=source,
        )
        return plan, select, joins

    def _inspect_ygo(self) -> tuple[CatalogPlan, str, str]:
        game, table, key = Game.YGO, "ygo_cards", "card_id"
        cols = table_columns(self._conn, table)
        if key not in cols:
            return self._unavailable(
                game, table, key, f"{table}.{key} not found",
            ), "", ""
        select = _select(key, "c.name" if "name" in cols else "NULL")
        plan = CatalogPlan(
            game=game, table=table, key_column=key,
            set_source=SetSource.NONE,
        )
        return plan, select, ""

    def _inspect_mtg(self) -> tuple[CatalogPlan, str, str]:
        game, table, key = Game.MTG, "mtg_cards", "id"
        cols = table_columns(self._conn, table)
        if key not in cols:
            return self._unavailable(
                game, table, key, f"{table}.{key} not found",
            ), "", ""

        number_col = (
            "collector_number" if "collector_number" in cols else None
        )
        has_set_code = "set_code" in cols
        sets = table_columns(self._conn, "mtg_sets")
        joins = ""
        if has_set_code and "code" in sets and "name" in sets:
            source, set_name_expr = SetSource.JOIN, "s.name"
            joins = " LEFT JOIN mtg_sets s ON s.code = c.set_code"
        elif has_set_code:
            source, set_name_expr = SetSource.ID_ONLY, "NULL"
        else:
            source, set_name_expr = SetSource.NONE, "NULL"

        select = _select(
            key,
            "c.name" if "name" in cols else "NULL",
            set_name_expr=set_name_expr,
            set_code_expr="c.set_code" if has_set_code else "NULL",
            number_expr=(
                f"CAST(c.{number_col} AS TEXT)" if number_col else "NULL"
            ),
        )
        plan = CatalogPlan(
            game=game,
            table=table,
            key_column=key,
            set_source=source,
            number_column=number_col,
        )
        return plan, select, joins

    def _inspect(self, game: Game, skip_fresh: bool) -> CatalogPlan:
        inspectors = {
            Game.POKEMON: self._inspect_pokemon,
            Game.YGO: self._inspect_ygo,
            Game.MTG: self._inspect_mtg,
        }
        plan, select, joins = inspectors[game]()
        if not select:
            return plan

        where = ""
        filters_stale = False
        if skip_fresh:
            target = PRICE_TABLES[game]
            price_cols = table_columns(self._conn, target.name)
            if "updated_at" in price_cols:
                joins += (
                    f" LEFT JOIN {target.name} p "
                    f"ON p.{target.key_column} = c.{plan.key_column}"
                )
                where = (
                    " WHERE p.updated_at IS NULL OR p.updated_at < ?"
                )
                filters_stale = True

        sql = (
            f"{select} FROM {plan.table} c{joins}{where} "
            f"ORDER BY c.{plan.key_column}"
        )
        plan = CatalogPlan(
            game=plan.game,
            table=plan.table,
            key_column=plan.key_column,
            set_source=plan.set_source,
            number_column=plan.number_column,
            sql=sql,
            filters_stale=filters_stale,
        )
        logger.info(
            "[%s] catalog plan: set=%s number=%s stale_filter=%s",
            game.label,
            plan.set_source.value,
            plan.number_column or "-",
            filters_stale,
        )
        return plan

    def plan_for(self, game: Game, skip_fresh: bool = False) -> CatalogPlan:
        """Inspect ``game``'s catalog once and cache the resulting plan."""
        cache_key = (game, skip_fresh)
        if cache_key not in self._plans:
            self._plans[cache_key] = self._inspect(game, skip_fresh)
        return self._plans[cache_key]

    # ── Streaming ────────────────────────────────────────

    @staticmethod
    def _to_item(row: sqlite3.Row | tuple[Any, ...]) -> CatalogItem:
        def text(value: Any) -> str | None:
            return None if value is None else str(value)

        return CatalogItem(
            id=row[0],
            name=text(row[1]),
            set_id=text(row[2]),
            set_name=text(row[3]),
            set_code=text(row[4]),
            number=text(row[5]),
        )

    async def iter_items(
        self,
        game: Game,
        limit: int | None = None,
        stale_days: int = 0,
    ) -> AsyncIterator[CatalogItem]:
        """Yield ``game``'s items in primary-key order.

        With ``stale_days > 0`` items priced more recently than that
        are skipped.  ``limit`` caps the number of rows for partial runs.
        """
        plan = self.plan_for(game, skip_fresh=stale_days > 0)
        if not plan.available:
            return

        sql = plan.sql
        params: list[Any] = []
        if plan.filters_stale:
            cutoff = utc_now() - timedelta(days=stale_days)
            params.append(format_timestamp(cutoff))
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        cursor = await asyncio.to_thread(self._conn.execute, sql, params)
        try:
            while True:
                rows = await asyncio.to_thread(
                    cursor.fetchmany, self.fetch_size,
                )
                if not rows:
                    break
                for row in rows:
                    yield self._to_item(row)
        finally:
            cursor.close()
