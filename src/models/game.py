# src/models/game.py

"""Trading-card games covered by the price sweep."""

from enum import Enum


class Game(str, Enum):
    """Card game catalog identifier, as accepted on the command line."""

    POKEMON = "pokemon"
    YGO = "ygo"
    MTG = "mtg"

    @property
    def label(self) -> str:
        """Human-readable name used in log lines."""
        return _LABELS[self]


_LABELS: dict[Game, str] = {
    Game.POKEMON: "Pokémon",
    Game.YGO: "Yu-Gi-Oh!",
    Game.MTG: "MTG",
}
