# src/filters/query_builder.py

"""Marketplace search strings built from catalog items, per game.

Each game has one precise query (quoted name plus set and number) and
a list of wider fallback queries that are tried when the precise one
finds too few listings.
"""

import logging
import unicodedata
from collections.abc import Callable

from src.models.catalog_item import CatalogItem
from src.models.game import Game

logger = logging.getLogger("price_sweep.filters")

# Suffixes naming each game, the precise query's suffix first
GAME_ALIASES: dict[Game, tuple[str, ...]] = {
    Game.POKEMON: ("Pokemon TCG", "Pokemon Trading Card Game"),
    Game.YGO: ("Yu-Gi-Oh! TCG", "YuGiOh", "YGO"),
    Game.MTG: ("MTG", "Magic The Gathering"),
}

# Symbols NFKD leaves alone
_SYMBOLS = {"δ": "delta", "Δ": "delta"}


def number_from_id(item_id: object) -> str | None:
    """Card number after the first ``-`` of an id like ``swsh1-25``."""
    if not item_id:
        return None
    text = str(item_id)
    _, sep, tail = text.partition("-")
    if not sep or not tail:
        return None
    return tail


def to_ascii(text: str) -> str:
    """Fold accents and known symbols so ``Flabébé`` becomes ``Flabebe``."""
    for symbol, word in _SYMBOLS.items():
        text = text.replace(symbol, word)
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _quoted(name: str | None) -> str:
    return f'"{name}"' if name else ""


def _join(parts: list[str]) -> str:
    return " ".join(p for p in parts if p).strip()


def build_pokemon_query(item: CatalogItem) -> str:
    """``"Name" <set> #<number> Pokemon TCG``."""
    number = number_from_id(item.id)
    return _join([
        _quoted(item.name),
        item.set_label,
        f"#{number}" if number else "",
        GAME_ALIASES[Game.POKEMON][0],
    ])


def build_ygo_query(item: CatalogItem) -> str:
    """``"Name" Yu-Gi-Oh! TCG``."""
    return _join([_quoted(item.name), GAME_ALIASES[Game.YGO][0]])


def build_mtg_query(item: CatalogItem) -> str:
    """``"Name" <SET> <collector number> MTG``."""
    return _join([
        _quoted(item.name),
        item.set_label.upper(),
        str(item.number) if item.number else "",
        GAME_ALIASES[Game.MTG][0],
    ])


QUERY_BUILDERS: dict[Game, Callable[[CatalogItem], str]] = {
    Game.POKEMON: build_pokemon_query,
    Game.YGO: build_ygo_query,
    Game.MTG: build_mtg_query,
}


def build_query(game: Game, item: CatalogItem) -> str:
    """Build the search string for ``item`` in ``game``'s catalog."""
    query = QUERY_BUILDERS[game](item)
    logger.debug("Query for %s %s: %r", game.value, item.id, query)
    return query


def fallback_queries(game: Game, item: CatalogItem) -> list[str]:
    """Wider queries for ``item``, narrowest first.

    Name plus set with every game alias, then name alone with every
    alias.  An ASCII-folded variant precedes any query containing
    accents.  The precise query is never repeated.
    """
    name = item.name or ""
    if not name:
        return []
    candidates: list[str] = []
    for alias in GAME_ALIASES[game]:
        if item.set_label:
            candidates.append(_join([name, item.set_label, alias]))
    for alias in GAME_ALIASES[game]:
        candidates.append(_join([name, alias]))

    seen = {build_query(game, item)}
    queries: list[str] = []
    for query in candidates:
        for variant in (to_ascii(query), query):
            if variant not in seen:
                seen.add(variant)
                queries.append(variant)
    return queries
