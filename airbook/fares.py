"""Seat pricing derived from leg distance and itinerary length."""
from __future__ import annotations

import math
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from .errors import InvalidFareClassError, ValidationError

if TYPE_CHECKING:  # pragma: no cover - import for type hints only
    from .search import Itinerary

BASE_RATE = 0.10
LEG_DISCOUNT = 0.03
MIN_RATE = 0.01
WINDOW_AISLE_SURCHARGE = 10
EXTRA_BAG_FEE = 25


class FareClass(str, Enum):
    """Cabin classes, ordered front to back."""

    FIRST = "first"
    BUSINESS = "business"
    ECONOMY = "economy"

    @classmethod
    def parse(cls, token: Optional[str]) -> "FareClass":
        """Map a submitted class token (``economy``/``e`` and so on) to a member."""

        normalized = (token or "").strip().lower()
        member = _TOKENS.get(normalized)
        if member is None:
            raise InvalidFareClassError(token)
        return member


_TOKENS: Dict[str, FareClass] = {
    "economy": FareClass.ECONOMY,
    "business": FareClass.BUSINESS,
    "first": FareClass.FIRST,
    "e": FareClass.ECONOMY,
    "b": FareClass.BUSINESS,
    "f": FareClass.FIRST,
}

CLASS_MULTIPLIER: Dict[FareClass, int] = {
    FareClass.ECONOMY: 1,
    FareClass.BUSINESS: 2,
    FareClass.FIRST: 3,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def distance_rate(legs_in_itinerary: int) -> float:
    """Per-kilometre economy rate, discounted for every extra leg."""

    if legs_in_itinerary < 1:
        raise ValidationError("An itinerary has at least one leg")
    rate = BASE_RATE - LEG_DISCOUNT * (legs_in_itinerary - 1)
    if rate <= 0:
        return MIN_RATE
    return rate


def base_price(distance_km: float, legs_in_itinerary: int) -> int:
    if distance_km < 0:
        raise ValidationError("Distance cannot be negative")
    return _round_half_up(distance_km * distance_rate(legs_in_itinerary))


def price_per_seat(
    distance_km: float,
    legs_in_itinerary: int,
    fare_class: FareClass | str,
    *,
    window_or_aisle: bool = False,
) -> int:
    """Return the price of one seat on one leg.

    Business and first multiply the rounded economy base; the window/aisle
    surcharge applies to economy seats only.
    """

    if not isinstance(fare_class, FareClass):
        fare_class = FareClass.parse(fare_class)
    price = base_price(distance_km, legs_in_itinerary) * CLASS_MULTIPLIER[fare_class]
    if window_or_aisle and fare_class is FareClass.ECONOMY:
        price += WINDOW_AISLE_SURCHARGE
    return price


def itinerary_price(itinerary: "Itinerary") -> int:
    """Economy display price for a whole itinerary."""

    legs = len(itinerary.legs)
    return sum(base_price(leg.distance_km, legs) for leg in itinerary.legs)


def bag_fee(extra_bags: int) -> int:
    if extra_bags < 0:
        raise ValidationError("Extra bag count cannot be negative")
    return EXTRA_BAG_FEE * extra_bags


__all__ = [
    "BASE_RATE",
    "LEG_DISCOUNT",
    "MIN_RATE",
    "WINDOW_AISLE_SURCHARGE",
    "EXTRA_BAG_FEE",
    "CLASS_MULTIPLIER",
    "FareClass",
    "distance_rate",
    "base_price",
    "price_per_seat",
    "itinerary_price",
    "bag_fee",
]
