from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from airbook.errors import ValidationError
from airbook.schedule import FlightInstance
from airbook.search import (
    Itinerary,
    find_itineraries,
    format_duration,
    rank_itineraries,
    round_trip_window_hours,
    search,
    search_round_trip,
)

from conftest import DEPARTURE

START = datetime(2030, 5, 1, 0, 0)


def leg(number, origin, destination, departure, minutes=60, distance=500):
    return FlightInstance(
        flight_number=number,
        carrier=number[:2],
        origin=origin,
        destination=destination,
        departure=departure,
        duration_minutes=minutes,
        distance_km=distance,
        aircraft_model="Airbus A320neo",
    )


def at(hours, minutes=0):
    return START + timedelta(hours=hours, minutes=minutes)


def test_short_connection_is_rejected():
    flights = [
        leg("OS1", "VIE", "ZRH", at(8)),
        leg("OS2", "ZRH", "CDG", at(10, 30)),
    ]

    assert find_itineraries(flights, "VIE", "CDG", START) == []


def test_connection_of_125_minutes_is_accepted():
    flights = [
        leg("OS1", "VIE", "ZRH", at(8)),
        leg("OS2", "ZRH", "CDG", at(11, 5)),
    ]

    results = find_itineraries(flights, "vie", "cdg", START)

    assert len(results) == 1
    assert results[0].signature == ("OS1", "OS2")
    assert results[0].stops == 1


def test_connection_longer_than_twelve_hours_is_rejected():
    flights = [
        leg("OS1", "VIE", "ZRH", at(8)),
        leg("OS2", "ZRH", "CDG", at(21, 30)),
    ]

    assert find_itineraries(flights, "VIE", "CDG", START) == []


def test_results_ranked_by_departure_then_duration():
    flights = [
        leg("LH3", "VIE", "CDG", at(9), minutes=120),
        leg("AF2", "VIE", "CDG", at(7), minutes=150),
        leg("OS1", "VIE", "CDG", at(7), minutes=110),
    ]

    results = find_itineraries(flights, "VIE", "CDG", START)

    assert [r.signature[0] for r in results] == ["OS1", "AF2", "LH3"]


def test_fewer_legs_win_when_departure_and_duration_tie():
    flights = [
        leg("OS1", "VIE", "ZRH", at(7)),
        leg("OS2", "ZRH", "CDG", at(10), minutes=120),
        leg("OS3", "VIE", "CDG", at(7), minutes=300),
    ]

    results = find_itineraries(flights, "VIE", "CDG", START)

    assert [r.duration_minutes for r in results] == [300, 300]
    assert [r.signature for r in results] == [("OS3",), ("OS1", "OS2")]


def test_aware_departure_is_compared_in_utc():
    flights = [
        leg("OS1", "VIE", "CDG", at(1)),
        leg("OS2", "VIE", "CDG", at(3)),
    ]
    # 04:00 at UTC+2 is 02:00 UTC
    departure = datetime(2030, 5, 1, 4, 0, tzinfo=timezone(timedelta(hours=2)))

    results = find_itineraries(flights, "VIE", "CDG", departure)

    assert [r.signature for r in results] == [("OS2",)]


def test_results_truncated_to_five():
    flights = [leg(f"OS{i}", "VIE", "CDG", at(6 + i)) for i in range(7)]

    results = find_itineraries(flights, "VIE", "CDG", START)

    assert len(results) == 5
    assert [r.signature[0] for r in results] == ["OS0", "OS1", "OS2", "OS3", "OS4"]


def test_rank_drops_repeated_flight_sequences():
    first = Itinerary((leg("OS1", "VIE", "CDG", at(7)),))
    duplicate = Itinerary((leg("OS1", "VIE", "CDG", at(7)),))
    other = Itinerary((leg("OS2", "VIE", "CDG", at(8)),))

    ranked = rank_itineraries([other, duplicate, first])

    assert [r.signature for r in ranked] == [("OS1",), ("OS2",)]


def test_paths_never_return_to_a_visited_airport():
    flights = [
        leg("OS1", "VIE", "ZRH", at(6)),
        leg("OS2", "ZRH", "VIE", at(9)),
        leg("OS3", "VIE", "CDG", at(12)),
    ]

    results = find_itineraries(flights, "VIE", "CDG", START)

    assert [r.signature for r in results] == [("OS3",)]


def test_max_stops_zero_only_returns_direct_flights():
    flights = [
        leg("OS1", "VIE", "ZRH", at(6)),
        leg("OS2", "ZRH", "CDG", at(9)),
        leg("OS3", "VIE", "CDG", at(14)),
    ]

    results = find_itineraries(flights, "VIE", "CDG", START, max_stops=0)

    assert [r.signature for r in results] == [("OS3",)]


def test_two_stop_itinerary_is_found():
    flights = [
        leg("OS1", "VIE", "ZRH", at(6)),
        leg("OS2", "ZRH", "MXP", at(9)),
        leg("OS3", "MXP", "CDG", at(12)),
    ]

    results = find_itineraries(flights, "VIE", "CDG", START)

    assert [r.signature for r in results] == [("OS1", "OS2", "OS3")]
    assert results[0].stops == 2


def test_flights_outside_window_are_ignored():
    flights = [
        leg("OS0", "VIE", "CDG", START - timedelta(minutes=1)),
        leg("OS1", "VIE", "CDG", START + timedelta(hours=72)),
        leg("OS2", "VIE", "CDG", START + timedelta(hours=71)),
    ]

    results = find_itineraries(flights, "VIE", "CDG", START)

    assert [r.signature for r in results] == [("OS2",)]


def test_trip_longer_than_limit_is_discarded():
    flights = [
        leg("OS1", "VIE", "ZRH", at(0)),
        leg("OS2", "ZRH", "MXP", at(12)),
        leg("OS3", "MXP", "CDG", at(24), minutes=780),
    ]

    assert find_itineraries(flights, "VIE", "CDG", START) == []


def test_invalid_requests_raise_validation_error():
    with pytest.raises(ValidationError):
        find_itineraries([], "VIE", "vie", START)
    with pytest.raises(ValidationError):
        find_itineraries([], "VI", "CDG", START)
    with pytest.raises(ValidationError):
        find_itineraries([], "VIE", "CDG", START, max_stops=3)


def test_empty_schedule_returns_no_itineraries():
    assert find_itineraries([], "VIE", "CDG", START) == []


def test_itinerary_serialization():
    itinerary = Itinerary(
        (
            leg("OS1", "VIE", "ZRH", at(8), minutes=60, distance=1000),
            leg("OS2", "ZRH", "CDG", at(11, 5), minutes=60, distance=500),
        )
    )

    payload = itinerary.as_dict()

    assert payload["total_duration"] == "4h 05m"
    assert payload["stops"] == 1
    assert payload["price"] == 105
    assert payload["flights"][1]["departure"] == "2030-05-01T11:05:00"
    assert format_duration(59) == "0h 59m"


def test_round_trip_window_is_clamped_and_rounded():
    outbound = datetime(2030, 5, 1, 8)

    assert round_trip_window_hours(outbound, outbound + timedelta(hours=10)) == 24
    assert round_trip_window_hours(outbound, outbound + timedelta(hours=100)) == 72
    assert round_trip_window_hours(outbound, outbound + timedelta(hours=47, minutes=30)) == 48
    assert round_trip_window_hours(outbound, outbound + timedelta(hours=30, minutes=20)) == 30


def test_search_reads_the_schedule_store(network):
    with network() as session:
        results = search(session, "VIE", "CDG", DEPARTURE - timedelta(hours=1))

    assert [r.signature for r in results] == [("OS101", "OS205")]
    assert results[0].legs[0].origin_city == "Vienna"


def test_round_trip_rejects_return_before_departure(network):
    with network() as session:
        with pytest.raises(ValidationError):
            search_round_trip(session, "VIE", "ZRH", DEPARTURE, DEPARTURE - timedelta(days=1))


def test_round_trip_searches_both_directions(network):
    with network() as session:
        result = search_round_trip(
            session, "VIE", "ZRH", DEPARTURE - timedelta(hours=1), DEPARTURE + timedelta(days=2)
        )

    assert [r.signature for r in result.outbound] == [("OS101",)]
    assert result.inbound == []
    assert result.outbound_window_hours == 49


def test_round_trip_accepts_aware_instants(network):
    outbound = (DEPARTURE - timedelta(hours=1)).replace(tzinfo=timezone.utc)

    with network() as session:
        result = search_round_trip(session, "VIE", "ZRH", outbound, outbound + timedelta(days=2))

    assert [r.signature for r in result.outbound] == [("OS101",)]
