# src/models/catalog_item.py

"""Read-only catalog projection consumed by the price sweep."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CatalogItem:
    """A card to price, with whatever descriptive columns the catalog has.

    Optional fields are ``None`` when the catalog schema lacks the
    column or join that would provide them.
    """

    id: Any
    name: str | None
    set_id: str | None = None
    set_name: str | None = None
    set_code: str | None = None
    number: str | None = None

    @property
    def disambiguators(self) -> list[str]:
        """Set descriptors, most readable first, without repeats."""
        values: list[str] = []
        for value in (self.set_name, self.set_id, self.set_code):
            if value and str(value) not in values:
                values.append(str(value))
        return values

    @property
    def set_label(self) -> str:
        """Best single set descriptor, or an empty string."""
        labels = self.disambiguators
        return labels[0] if labels else ""
