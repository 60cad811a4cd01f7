"""Read access to scheduled flight instances, plus record helpers used by tooling."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, aliased

from .models import AircraftModel, Airport, Flight, Route


@dataclass(frozen=True)
class FlightInstance:
    """One dated departure of a route, flattened for the search engine."""

    flight_number: str
    carrier: str
    origin: str
    destination: str
    departure: datetime
    duration_minutes: int
    distance_km: int
    aircraft_model: str
    origin_city: str = ""
    destination_city: str = ""

    @property
    def arrival(self) -> datetime:
        return self.departure + timedelta(minutes=self.duration_minutes)


def _instances_query() -> Select:
    origin_airport = aliased(Airport)
    destination_airport = aliased(Airport)
    return (
        select(
            Flight.flight_number,
            Route.carrier,
            Route.origin,
            Route.destination,
            Flight.departure_time,
            Route.duration_minutes,
            Route.distance_km,
            Flight.aircraft_model,
            origin_airport.city.label("origin_city"),
            destination_airport.city.label("destination_city"),
        )
        .join(Route, Flight.route_code == Route.code)
        .join(origin_airport, Route.origin == origin_airport.iata_code)
        .join(destination_airport, Route.destination == destination_airport.iata_code)
    )


def _to_instance(row) -> FlightInstance:
    return FlightInstance(
        flight_number=row.flight_number,
        carrier=row.carrier,
        origin=row.origin,
        destination=row.destination,
        departure=row.departure_time,
        duration_minutes=row.duration_minutes,
        distance_km=row.distance_km,
        aircraft_model=row.aircraft_model,
        origin_city=row.origin_city or "",
        destination_city=row.destination_city or "",
    )


def load_departures(session: Session, start: datetime, end: datetime) -> List[FlightInstance]:
    """Every flight departing in ``[start, end)``, regardless of route."""

    stmt = (
        _instances_query()
        .where(Flight.departure_time >= start, Flight.departure_time < end)
        .order_by(Flight.departure_time, Flight.flight_number)
    )
    return [_to_instance(row) for row in session.execute(stmt)]


def get_flight(session: Session, flight_number: str) -> Optional[FlightInstance]:
    stmt = _instances_query().where(Flight.flight_number == flight_number)
    row = session.execute(stmt).first()
    return _to_instance(row) if row else None


def get_aircraft_model(session: Session, name: str) -> Optional[AircraftModel]:
    return session.get(AircraftModel, name)


def add_airport(
    session: Session,
    *,
    iata_code: str,
    name: str,
    city: str,
    country: str = "",
) -> Airport:
    airport = Airport(iata_code=iata_code.upper(), name=name, city=city, country=country)
    session.add(airport)
    session.flush()
    return airport


def add_aircraft_model(
    session: Session,
    *,
    name: str,
    layout: str,
    seats_economy: int,
    seats_business: int = 0,
    seats_first: int = 0,
) -> AircraftModel:
    model = AircraftModel(
        name=name,
        layout=layout,
        seats_first=seats_first,
        seats_business=seats_business,
        seats_economy=seats_economy,
    )
    session.add(model)
    session.flush()
    return model


def add_route(
    session: Session,
    *,
    code: str,
    origin: str,
    destination: str,
    duration_minutes: int,
    distance_km: int,
    carrier: str,
) -> Route:
    route = Route(
        code=code,
        origin=origin.upper(),
        destination=destination.upper(),
        duration_minutes=duration_minutes,
        distance_km=distance_km,
        carrier=carrier,
    )
    session.add(route)
    session.flush()
    return route


def add_flight(
    session: Session,
    *,
    flight_number: str,
    route_code: str,
    departure_time: datetime,
    aircraft_model: str,
) -> Flight:
    """Create a dated flight instance."""

    flight = Flight(
        flight_number=flight_number,
        route_code=route_code,
        departure_time=departure_time,
        aircraft_model=aircraft_model,
    )
    session.add(flight)
    session.flush()
    return flight


__all__ = [
    "FlightInstance",
    "load_departures",
    "get_flight",
    "get_aircraft_model",
    "add_airport",
    "add_aircraft_model",
    "add_route",
    "add_flight",
]
