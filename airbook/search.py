"""Itinerary search over the flight timetable.

The engine loads every departure inside the search window, indexes it by
origin airport and walks the connection graph up to ``max_stops`` stops.
A connection is valid only when the next leg leaves between
``min_connection_minutes`` and ``max_connection_hours`` after the previous
leg lands, and a whole trip may not exceed ``max_trip_hours`` from first
departure to final arrival. Results are ranked by first departure, then
total duration, then number of legs, deduplicated by flight-number
sequence and truncated to ``MAX_RESULTS``.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from .errors import ValidationError
from .fares import itinerary_price
from .models import as_naive_utc
from .schedule import FlightInstance, load_departures

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_WINDOW_HOURS = 72
DEFAULT_MAX_STOPS = 2
DEFAULT_MIN_CONNECTION_MINUTES = 120
DEFAULT_MAX_CONNECTION_HOURS = 12
DEFAULT_MAX_TRIP_HOURS = 36
MAX_STOPS_LIMIT = 2
MAX_RESULTS = 5

MIN_ROUND_TRIP_WINDOW_HOURS = 24
MAX_ROUND_TRIP_WINDOW_HOURS = 72


def _minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def format_duration(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest:02d}m"


def _format_instant(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S")


@dataclass(frozen=True)
class Itinerary:
    """Ordered legs from the requested origin to the requested destination."""

    legs: Tuple[FlightInstance, ...]

    @property
    def departure(self) -> datetime:
        return self.legs[0].departure

    @property
    def arrival(self) -> datetime:
        return self.legs[-1].arrival

    @property
    def duration_minutes(self) -> int:
        return _minutes_between(self.departure, self.arrival)

    @property
    def stops(self) -> int:
        return len(self.legs) - 1

    @property
    def signature(self) -> Tuple[str, ...]:
        return tuple(leg.flight_number for leg in self.legs)

    def sort_key(self) -> Tuple[datetime, int, int]:
        return (self.departure, self.duration_minutes, len(self.legs))

    def as_dict(self) -> Dict[str, object]:
        return {
            "total_duration": format_duration(self.duration_minutes),
            "duration_minutes": self.duration_minutes,
            "stops": self.stops,
            "price": itinerary_price(self),
            "flights": [
                {
                    "flight_number": leg.flight_number,
                    "carrier": leg.carrier,
                    "origin": leg.origin,
                    "destination": leg.destination,
                    "origin_city": leg.origin_city,
                    "destination_city": leg.destination_city,
                    "departure": _format_instant(leg.departure),
                    "arrival": _format_instant(leg.arrival),
                    "aircraft_model": leg.aircraft_model,
                    "distance_km": leg.distance_km,
                }
                for leg in self.legs
            ],
        }


@dataclass(frozen=True)
class SearchOptions:
    search_window_hours: float = DEFAULT_SEARCH_WINDOW_HOURS
    max_stops: int = DEFAULT_MAX_STOPS
    min_connection_minutes: int = DEFAULT_MIN_CONNECTION_MINUTES
    max_connection_hours: float = DEFAULT_MAX_CONNECTION_HOURS
    max_trip_hours: float = DEFAULT_MAX_TRIP_HOURS
    max_results: int = MAX_RESULTS

    def validate(self) -> None:
        if self.search_window_hours <= 0:
            raise ValidationError("Search window must be positive")
        if not 0 <= self.max_stops <= MAX_STOPS_LIMIT:
            raise ValidationError(f"max_stops must be between 0 and {MAX_STOPS_LIMIT}")
        if self.min_connection_minutes < 0:
            raise ValidationError("Minimum connection time cannot be negative")
        if self.min_connection_minutes > self.max_connection_hours * 60:
            raise ValidationError("Minimum connection time exceeds the maximum")
        if self.max_trip_hours <= 0:
            raise ValidationError("Maximum trip duration must be positive")
        if self.max_results < 1:
            raise ValidationError("max_results must be at least 1")

    def connection_ok(self, landing: FlightInstance, departing: FlightInstance) -> bool:
        earliest = landing.arrival + timedelta(minutes=self.min_connection_minutes)
        latest = landing.arrival + timedelta(hours=self.max_connection_hours)
        return earliest <= departing.departure <= latest

    def trip_ok(self, legs: Sequence[FlightInstance]) -> bool:
        if not legs:
            return False
        return _minutes_between(legs[0].departure, legs[-1].arrival) <= self.max_trip_hours * 60


@dataclass
class RoundTripResult:
    outbound: List[Itinerary] = field(default_factory=list)
    inbound: List[Itinerary] = field(default_factory=list)
    outbound_window_hours: float = DEFAULT_SEARCH_WINDOW_HOURS


def normalize_airport(code: Optional[str], label: str) -> str:
    candidate = (code or "").strip().upper()
    if len(candidate) != 3 or not candidate.isalpha():
        raise ValidationError(f"{label} must be a three-letter IATA code")
    return candidate


def rank_itineraries(itineraries: Iterable[Itinerary], limit: int = MAX_RESULTS) -> List[Itinerary]:
    """Sort, drop repeated flight sequences and keep the first ``limit``."""

    ordered = sorted(itineraries, key=Itinerary.sort_key)
    seen: Set[Tuple[str, ...]] = set()
    unique: List[Itinerary] = []
    for itinerary in ordered:
        if itinerary.signature in seen:
            continue
        seen.add(itinerary.signature)
        unique.append(itinerary)
    return unique[:limit]


def _enumerate_paths(
    by_origin: Dict[str, List[FlightInstance]],
    origin: str,
    destination: str,
    options: SearchOptions,
) -> List[Itinerary]:
    found: List[Itinerary] = []
    max_legs = options.max_stops + 1

    def extend(path: List[FlightInstance], visited: Set[str]) -> None:
        last = path[-1]
        if last.destination == destination:
            if options.trip_ok(path):
                found.append(Itinerary(tuple(path)))
            return
        if len(path) >= max_legs or not options.trip_ok(path):
            return
        for candidate in by_origin.get(last.destination, ()):
            if candidate.destination in visited:
                continue
            if not options.connection_ok(last, candidate):
                continue
            path.append(candidate)
            visited.add(candidate.destination)
            extend(path, visited)
            visited.discard(candidate.destination)
            path.pop()

    for first in by_origin.get(origin, ()):
        extend([first], {origin, first.destination})
    return found


def find_itineraries(
    flights: Iterable[FlightInstance],
    origin: str,
    destination: str,
    departure_not_before: datetime,
    *,
    search_window_hours: float = DEFAULT_SEARCH_WINDOW_HOURS,
    max_stops: int = DEFAULT_MAX_STOPS,
    min_connection_minutes: int = DEFAULT_MIN_CONNECTION_MINUTES,
    max_connection_hours: float = DEFAULT_MAX_CONNECTION_HOURS,
    max_trip_hours: float = DEFAULT_MAX_TRIP_HOURS,
    max_results: int = MAX_RESULTS,
) -> List[Itinerary]:
    """Build ranked itineraries from an in-memory list of flights."""

    origin = normalize_airport(origin, "Origin")
    destination = normalize_airport(destination, "Destination")
    if origin == destination:
        raise ValidationError("Origin and destination must differ")
    options = SearchOptions(
        search_window_hours=search_window_hours,
        max_stops=max_stops,
        min_connection_minutes=min_connection_minutes,
        max_connection_hours=max_connection_hours,
        max_trip_hours=max_trip_hours,
        max_results=max_results,
    )
    options.validate()

    departure_not_before = as_naive_utc(departure_not_before)
    window_end = departure_not_before + timedelta(hours=search_window_hours)
    by_origin: Dict[str, List[FlightInstance]] = defaultdict(list)
    for flight in flights:
        if departure_not_before <= flight.departure < window_end:
            by_origin[flight.origin].append(flight)
    for departures in by_origin.values():
        departures.sort(key=lambda leg: (leg.departure, leg.flight_number))

    candidates = _enumerate_paths(by_origin, origin, destination, options)
    ranked = rank_itineraries(candidates, options.max_results)
    logger.debug(
        "search %s->%s from %s: %d candidates, %d returned",
        origin,
        destination,
        departure_not_before,
        len(candidates),
        len(ranked),
    )
    return ranked


def search(
    session: Session,
    origin: str,
    destination: str,
    departure_not_before: datetime,
    *,
    search_window_hours: float = DEFAULT_SEARCH_WINDOW_HOURS,
    max_stops: int = DEFAULT_MAX_STOPS,
    min_connection_minutes: int = DEFAULT_MIN_CONNECTION_MINUTES,
    max_connection_hours: float = DEFAULT_MAX_CONNECTION_HOURS,
    max_trip_hours: float = DEFAULT_MAX_TRIP_HOURS,
) -> List[Itinerary]:
    """Load the search window from the schedule store and rank itineraries."""

    if search_window_hours <= 0:
        raise ValidationError("Search window must be positive")
    departure_not_before = as_naive_utc(departure_not_before)
    window_end = departure_not_before + timedelta(hours=search_window_hours)
    flights = load_departures(session, departure_not_before, window_end)
    return find_itineraries(
        flights,
        origin,
        destination,
        departure_not_before,
        search_window_hours=search_window_hours,
        max_stops=max_stops,
        min_connection_minutes=min_connection_minutes,
        max_connection_hours=max_connection_hours,
        max_trip_hours=max_trip_hours,
    )


def round_trip_window_hours(outbound: datetime, inbound: datetime) -> int:
    """Outbound search window derived from the gap between travel dates."""

    hours = (inbound - outbound).total_seconds() / 3600
    if hours < MIN_ROUND_TRIP_WINDOW_HOURS:
        return MIN_ROUND_TRIP_WINDOW_HOURS
    if hours > MAX_ROUND_TRIP_WINDOW_HOURS:
        return MAX_ROUND_TRIP_WINDOW_HOURS
    return int(math.floor(hours + 0.5))


def search_round_trip(
    session: Session,
    origin: str,
    destination: str,
    outbound: datetime,
    inbound: datetime,
) -> RoundTripResult:
    """Search outbound with a date-derived window and the return leg in reverse."""

    outbound = as_naive_utc(outbound)
    inbound = as_naive_utc(inbound)
    if inbound < outbound:
        raise ValidationError("Return date precedes the departure date")
    window = round_trip_window_hours(outbound, inbound)
    return RoundTripResult(
        outbound=search(session, origin, destination, outbound, search_window_hours=window),
        inbound=search(session, destination, origin, inbound),
        outbound_window_hours=window,
    )


__all__ = [
    "DEFAULT_SEARCH_WINDOW_HOURS",
    "DEFAULT_MAX_STOPS",
    "DEFAULT_MIN_CONNECTION_MINUTES",
    "DEFAULT_MAX_CONNECTION_HOURS",
    "DEFAULT_MAX_TRIP_HOURS",
    "MAX_RESULTS",
    "Itinerary",
    "SearchOptions",
    "RoundTripResult",
    "format_duration",
    "normalize_airport",
    "rank_itineraries",
    "find_itineraries",
    "search",
    "round_trip_window_hours",
    "search_round_trip",
]
