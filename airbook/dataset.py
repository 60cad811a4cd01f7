"""Utilities to populate the schedule store with sample data for tests and demos."""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, sessionmaker

from .models import AircraftModel, Airport, Route, utcnow
from .schedule import add_aircraft_model, add_airport, add_flight, add_route

logger = logging.getLogger(__name__)

AIRPORTS: Sequence[Tuple[str, str, str, str]] = (
    ("AMS", "Amsterdam Schiphol", "Amsterdam", "Netherlands"),
    ("ATH", "Athens International", "Athens", "Greece"),
    ("BER", "Berlin Brandenburg", "Berlin", "Germany"),
    ("BRU", "Brussels Airport", "Brussels", "Belgium"),
    ("CDG", "Paris Charles de Gaulle", "Paris", "France"),
    ("CPH", "Copenhagen Kastrup", "Copenhagen", "Denmark"),
    ("DUB", "Dublin Airport", "Dublin", "Ireland"),
    ("FCO", "Rome Fiumicino", "Rome", "Italy"),
    ("LHR", "London Heathrow", "London", "United Kingdom"),
    ("MAD", "Madrid Barajas", "Madrid", "Spain"),
    ("MXP", "Milan Malpensa", "Milan", "Italy"),
    ("VIE", "Vienna International", "Vienna", "Austria"),
    ("ZRH", "Zurich Airport", "Zurich", "Switzerland"),
)

# name, layout, first, business, economy
AIRCRAFT_MODELS: Sequence[Tuple[str, str, int, int, int]] = (
    ("ATR 72-600", "2-2", 0, 0, 70),
    ("Airbus A320neo", "3-3", 0, 12, 138),
    ("Boeing 787-9 Dreamliner", "3-3-3", 8, 28, 184),
    ("Airbus A380-800", "3-4-3", 12, 48, 290),
)

# carrier, origin, destination, duration (min), distance (km); flown both ways
ROUTES: Sequence[Tuple[str, str, str, int, int]] = (
    ("OS", "VIE", "ZRH", 85, 620),
    ("OS", "VIE", "BER", 85, 550),
    ("OS", "VIE", "CDG", 120, 1035),
    ("OS", "VIE", "AMS", 115, 975),
    ("AZ", "FCO", "MXP", 70, 510),
    ("AZ", "MXP", "CDG", 90, 850),
    ("AZ", "FCO", "MAD", 150, 1365),
    ("AF", "CDG", "BRU", 55, 260),
    ("AF", "AMS", "MAD", 155, 1460),
    ("AF", "BER", "ATH", 160, 1800),
    ("BA", "LHR", "AMS", 75, 370),
    ("BA", "LHR", "DUB", 70, 450),
    ("BA", "ATH", "CDG", 195, 2100),
    ("BA", "BER", "CPH", 65, 360),
    ("DL", "AMS", "FCO", 150, 1295),
    ("DL", "MAD", "ZRH", 125, 1240),
    ("DL", "LHR", "CPH", 115, 950),
)

BASE_SLOTS: Sequence[Tuple[int, int]] = (
    (6, 15), (8, 45), (11, 15), (13, 45), (16, 15), (18, 45), (20, 15),
)
TURNAROUND_OPTIONS: Sequence[int] = (60, 75, 90, 105, 120)


def _hash_index(key: str, algorithm: str, modulo: int) -> int:
    digest = hashlib.new(algorithm, key.encode("utf-8")).hexdigest()
    return int(digest, 16) % modulo


def base_slot_for_route(route_key: str) -> Tuple[int, int]:
    """Daily departure slot, stable for a given route pair."""

    return BASE_SLOTS[_hash_index(route_key, "md5", len(BASE_SLOTS))]


def turnaround_for_route(route_key: str) -> int:
    return TURNAROUND_OPTIONS[_hash_index(route_key, "sha1", len(TURNAROUND_OPTIONS))]


def model_for_distance(distance_km: int) -> str:
    if distance_km < 600:
        return "ATR 72-600"
    if distance_km < 1200:
        return "Airbus A320neo"
    if distance_km < 1800:
        return "Boeing 787-9 Dreamliner"
    return "Airbus A380-800"


def _ensure_reference_data(session: Session) -> None:
    for code, name, city, country in AIRPORTS:
        if session.get(Airport, code) is None:
            add_airport(session, iata_code=code, name=name, city=city, country=country)
    for name, layout, first, business, economy in AIRCRAFT_MODELS:
        if session.get(AircraftModel, name) is None:
            add_aircraft_model(
                session,
                name=name,
                layout=layout,
                seats_first=first,
                seats_business=business,
                seats_economy=economy,
            )
    for carrier, origin, destination, duration, distance in ROUTES:
        for dep, arr in ((origin, destination), (destination, origin)):
            code = f"{carrier}-{dep}-{arr}"
            if session.get(Route, code) is None:
                add_route(
                    session,
                    code=code,
                    origin=dep,
                    destination=arr,
                    duration_minutes=duration,
                    distance_km=distance,
                    carrier=carrier,
                )


def generate_sample_schedule(
    session_factory: sessionmaker[Session],
    *,
    start: Optional[datetime] = None,
    days: int = 7,
) -> Dict[str, int]:
    """Populate airports, aircraft, routes and ``days`` of daily rotations.

    Each route pair departs at a hashed daily slot; the reverse leg leaves
    after the outbound arrival plus a hashed turnaround.
    """

    first_day = (start or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
    flights = 0
    with session_factory() as session:
        _ensure_reference_data(session)
        serial = 0
        for carrier, origin, destination, duration, distance in ROUTES:
            pair_key = f"{carrier}-{'-'.join(sorted((origin, destination)))}"
            hour, minute = base_slot_for_route(pair_key)
            turnaround = turnaround_for_route(pair_key)
            model = model_for_distance(distance)
            for day in range(days):
                outbound_departure = first_day + timedelta(days=day, hours=hour, minutes=minute)
                return_departure = outbound_departure + timedelta(minutes=duration + turnaround)
                for dep, arr, departure in (
                    (origin, destination, outbound_departure),
                    (destination, origin, return_departure),
                ):
                    serial += 1
                    add_flight(
                        session,
                        flight_number=f"{carrier}{first_day:%y%m%d}{serial:05d}",
                        route_code=f"{carrier}-{dep}-{arr}",
                        departure_time=departure,
                        aircraft_model=model,
                    )
                    flights += 1
        session.commit()

    summary = {
        "airports": len(AIRPORTS),
        "aircraft_models": len(AIRCRAFT_MODELS),
        "routes": len(ROUTES) * 2,
        "flights": flights,
    }
    logger.info("sample schedule generated: %s", summary)
    return summary
