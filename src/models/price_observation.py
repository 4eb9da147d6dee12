# src/models/price_observation.py

"""Single listing price observation produced by a provider client."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceObservation:
    """Price and shipping of one marketplace listing, in USD."""

    price: float
    shipping: float = 0.0

    @property
    def landed(self) -> float:
        """Item price plus shipping, the unit all statistics use."""
        return self.price + self.shipping
