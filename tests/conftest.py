from __future__ import annotations

import sys
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from airbook.database import create_session_factory
from airbook.models import Base
from airbook.schedule import add_aircraft_model, add_airport, add_flight, add_route

DEPARTURE = datetime(2030, 5, 1, 8, 0)


def make_in_memory_session_factory():
    db_file = Path(tempfile.mkstemp(prefix="airbook-test", suffix=".db")[1])
    engine, session_factory = create_session_factory(
        f"sqlite+pysqlite:///{db_file}", echo=False
    )
    Base.metadata.create_all(engine)
    return session_factory


def seed_small_network(session_factory):
    """VIE -> ZRH (620 km) and ZRH -> CDG on an A320neo with a 3-3 cabin."""

    with session_factory() as session:
        for code, city in (("VIE", "Vienna"), ("ZRH", "Zurich"), ("CDG", "Paris")):
            add_airport(session, iata_code=code, name=f"{city} Airport", city=city)
        add_aircraft_model(
            session,
            name="Airbus A320neo",
            layout="3-3",
            seats_business=12,
            seats_economy=138,
        )
        add_route(
            session,
            code="OS-VIE-ZRH",
            origin="VIE",
            destination="ZRH",
            duration_minutes=85,
            distance_km=620,
            carrier="OS",
        )
        add_route(
            session,
            code="OS-ZRH-CDG",
            origin="ZRH",
            destination="CDG",
            duration_minutes=75,
            distance_km=480,
            carrier="OS",
        )
        add_flight(
            session,
            flight_number="OS101",
            route_code="OS-VIE-ZRH",
            departure_time=DEPARTURE,
            aircraft_model="Airbus A320neo",
        )
        add_flight(
            session,
            flight_number="OS205",
            route_code="OS-ZRH-CDG",
            departure_time=DEPARTURE + timedelta(hours=4),
            aircraft_model="Airbus A320neo",
        )
        session.commit()


@pytest.fixture
def session_factory():
    return make_in_memory_session_factory()


@pytest.fixture
def network(session_factory):
    seed_small_network(session_factory)
    return session_factory
