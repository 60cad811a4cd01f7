"""Airbook: itinerary search, fares, seat maps and time-bounded seat holds."""
from typing import TYPE_CHECKING, Any

from .booking import BookingSession
from .cli import main as cli_main
from .errors import (
    AirbookError,
    ConflictError,
    ExpiredHoldError,
    InvalidFareClassError,
    PaymentDeclinedError,
    StorageError,
    ValidationError,
)
from .fares import FareClass, price_per_seat
from .holds import (
    HOLD_TTL,
    SeatRequest,
    TicketRequest,
    finalize_holds,
    is_live_hold_owned_by,
    occupied_seats,
    reserve_seats,
)
from .search import Itinerary, search, search_round_trip
from .seatmap import build_seat_map

if TYPE_CHECKING:  # pragma: no cover - import for type hints only
    from .web import create_app as _create_app
    from .reaper import main as _reaper_main


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


def reaper_main(*args: Any, **kwargs: Any) -> None:  # pragma: no cover - thin wrapper
    from .reaper import main as _reaper_main

    _reaper_main(*args, **kwargs)


__all__ = [
    "AirbookError",
    "BookingSession",
    "ConflictError",
    "ExpiredHoldError",
    "FareClass",
    "HOLD_TTL",
    "InvalidFareClassError",
    "Itinerary",
    "PaymentDeclinedError",
    "SeatRequest",
    "StorageError",
    "TicketRequest",
    "ValidationError",
    "build_seat_map",
    "cli_main",
    "create_app",
    "finalize_holds",
    "is_live_hold_owned_by",
    "occupied_seats",
    "price_per_seat",
    "reaper_main",
    "reserve_seats",
    "search",
    "search_round_trip",
]
