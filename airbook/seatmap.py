"""Seat map generation from an aircraft's layout and per-class capacity.

Rows are allocated class by class (first, business, economy), each class
using its own sub-layout derived from the full aircraft layout. The
resulting seat codes (row number plus letter) are the vocabulary shared by
pricing, availability checks and holds, so generation must stay
deterministic.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Mapping, Sequence, Tuple

from .errors import ValidationError
from .fares import FareClass

if TYPE_CHECKING:  # pragma: no cover - import for type hints only
    from .models import AircraftModel

WINDOW = "window"
AISLE = "aisle"
MIDDLE = "middle"

FALLBACK_SUB_LAYOUT = "1-1"

CLASS_LAYOUTS: Dict[str, Dict[FareClass, str]] = {
    "2-2": {FareClass.FIRST: "", FareClass.BUSINESS: ""},
    "3-3": {FareClass.FIRST: "", FareClass.BUSINESS: "2-2"},
    "3-3-3": {FareClass.FIRST: "1-2-1", FareClass.BUSINESS: "2-2-2"},
    "3-4-3": {FareClass.FIRST: "1-2-1", FareClass.BUSINESS: "2-2-2"},
}

LAYOUT_LETTERS: Dict[str, Tuple[str, ...]] = {
    "1-1": ("A", "K"),
    "2-2": ("A", "B", "J", "K"),
    "3-3": ("A", "B", "C", "H", "J", "K"),
    "1-2-1": ("A", "E", "F", "K"),
    "2-2-2": ("A", "B", "E", "F", "J", "K"),
    "3-3-3": ("A", "B", "C", "D", "E", "F", "H", "J", "K"),
    "3-4-3": ("A", "B", "C", "D", "E", "F", "G", "H", "J", "K"),
}

CLASS_ORDER: Tuple[FareClass, ...] = (FareClass.FIRST, FareClass.BUSINESS, FareClass.ECONOMY)


@dataclass(frozen=True)
class Seat:
    code: str
    row: int
    letter: str
    fare_class: FareClass
    position: str

    @property
    def is_window_or_aisle(self) -> bool:
        return self.position in (WINDOW, AISLE)


def class_layout(layout: str, fare_class: FareClass) -> str:
    """Sub-layout used by ``fare_class`` on an aircraft with ``layout``.

    An empty string means the aircraft has no cabin of that class.
    """

    if fare_class is FareClass.ECONOMY:
        return layout
    overrides = CLASS_LAYOUTS.get(layout)
    if overrides is None:
        return FALLBACK_SUB_LAYOUT
    return overrides[fare_class]


def seat_letters(layout: str) -> Tuple[str, ...]:
    try:
        return LAYOUT_LETTERS[layout]
    except KeyError:
        raise ValidationError(f"Unsupported seat layout '{layout}'") from None


def aisle_positions(layout: str) -> List[int]:
    """Column counts after which an aisle gap sits, e.g. ``3-4-3`` -> ``[3, 7]``."""

    groups = [int(part) for part in layout.split("-")]
    positions: List[int] = []
    total = 0
    for size in groups[:-1]:
        total += size
        positions.append(total)
    return positions


def seat_position(layout: str, letter: str) -> str:
    letters = seat_letters(layout)
    if letter not in letters:
        raise ValidationError(f"Seat letter '{letter}' is not part of layout '{layout}'")
    index = letters.index(letter)
    if index == 0 or index == len(letters) - 1:
        return WINDOW
    for gap in aisle_positions(layout):
        if index in (gap - 1, gap):
            return AISLE
    return MIDDLE


def _normalize_counts(seats_per_class: Mapping[FareClass | str, int]) -> Dict[FareClass, int]:
    counts: Dict[FareClass, int] = {fare_class: 0 for fare_class in CLASS_ORDER}
    for key, value in seats_per_class.items():
        fare_class = key if isinstance(key, FareClass) else FareClass.parse(key)
        if value < 0:
            raise ValidationError(f"Seat count for {fare_class.value} cannot be negative")
        counts[fare_class] = int(value)
    return counts


def build_seat_map(layout: str, seats_per_class: Mapping[FareClass | str, int]) -> List[Seat]:
    """Expand ``layout`` and class capacities into row-major seats."""

    seat_letters(layout)
    counts = _normalize_counts(seats_per_class)
    seats: List[Seat] = []
    row = 1
    for fare_class in CLASS_ORDER:
        wanted = counts[fare_class]
        sub_layout = class_layout(layout, fare_class)
        if wanted == 0 or not sub_layout:
            continue
        letters = seat_letters(sub_layout)
        emitted = 0
        for _ in range(math.ceil(wanted / len(letters))):
            for letter in letters:
                if emitted == wanted:
                    break
                seats.append(
                    Seat(
                        code=f"{row}{letter}",
                        row=row,
                        letter=letter,
                        fare_class=fare_class,
                        position=seat_position(sub_layout, letter),
                    )
                )
                emitted += 1
            row += 1
    return seats


def seat_map_for_model(model: "AircraftModel") -> List[Seat]:
    return build_seat_map(
        model.layout,
        {
            FareClass.FIRST: model.seats_first,
            FareClass.BUSINESS: model.seats_business,
            FareClass.ECONOMY: model.seats_economy,
        },
    )


def index_seats(seats: Sequence[Seat]) -> Dict[str, Seat]:
    return {seat.code: seat for seat in seats}


__all__ = [
    "WINDOW",
    "AISLE",
    "MIDDLE",
    "CLASS_LAYOUTS",
    "LAYOUT_LETTERS",
    "CLASS_ORDER",
    "Seat",
    "class_layout",
    "seat_letters",
    "aisle_positions",
    "seat_position",
    "build_seat_map",
    "seat_map_for_model",
    "index_seats",
]
