from __future__ import annotations

from fastapi.testclient import TestClient

from airbook import web
from airbook.errors import PaymentDeclinedError, StorageError

ALICE = {"X-Traveler-Id": "alice"}
BOB = {"X-Traveler-Id": "bob"}
SEARCH = {"origin": "VIE", "destination": "CDG", "departure": "2030-05-01T07:00:00"}


def _client(session_factory):
    return TestClient(web.create_app(session_factory))


def _ticket(seat, fare_class="economy", **extra):
    payload = {"flight_number": "OS101", "seat_code": seat, "fare_class": fare_class, "price": 1}
    payload.update(extra)
    return payload


def test_solutions_one_way(network):
    client = _client(network)

    response = client.get("/solutions", params=SEARCH)

    assert response.status_code == 200
    payload = response.json()
    assert len(payload) == 1
    assert [leg["flight_number"] for leg in payload[0]["flights"]] == ["OS101", "OS205"]
    assert payload[0]["total_duration"] == "5h 15m"


def test_solutions_round_trip_shape(network):
    client = _client(network)

    response = client.get(
        "/solutions", params={**SEARCH, "return_date": "2030-05-03T07:00:00"}
    )

    assert response.status_code == 200
    assert set(response.json()) == {"outbound", "return"}


def test_solutions_rejects_bad_airports(network):
    client = _client(network)

    response = client.get("/solutions", params={**SEARCH, "destination": "VIE"})

    assert response.status_code == 400


def test_download_csv_and_xlsx(network):
    client = _client(network)

    csv_response = client.get("/solutions/download/csv", params=SEARCH)
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    lines = csv_response.text.strip().splitlines()
    assert lines[0].startswith("Direction,Option,Flight")
    assert len(lines) == 3

    xlsx_response = client.get("/solutions/download/xlsx", params=SEARCH)
    assert xlsx_response.status_code == 200
    assert xlsx_response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )


def test_configuration(network):
    client = _client(network)

    response = client.get("/booking/configuration", params={"model": "Airbus A320neo"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["total_seats"] == 150
    assert payload["seats"][0] == {
        "code": "1A",
        "row": 1,
        "letter": "A",
        "fare_class": "business",
        "position": "window",
    }

    missing = client.get("/booking/configuration", params={"model": "Concorde"})
    assert missing.status_code == 404


def test_traveler_header_is_required(network):
    client = _client(network)

    assert client.get("/booking/occupied", params={"flight": "OS101"}).status_code == 401
    assert client.post("/booking/hold", json=[_ticket("10A")]).status_code == 401


def test_hold_conflict_and_occupancy(network):
    client = _client(network)

    first = client.post("/booking/hold", json=[_ticket("10A"), _ticket("10B")], headers=ALICE)
    assert first.status_code == 200
    body = first.json()
    assert body["expires_in_seconds"] == 900
    assert [seat["price"] for seat in body["seats"]] == [72.0, 62.0]

    second = client.post("/booking/hold", json=[_ticket("10B"), _ticket("10C")], headers=BOB)
    assert second.status_code == 409
    assert second.json()["detail"]["occupied"] == ["10B"]

    assert client.get("/booking/occupied", params={"flight": "OS101"}, headers=BOB).json() == {
        "occupied": ["10A", "10B"]
    }
    assert client.get("/booking/occupied", params={"flight": "OS101"}, headers=ALICE).json() == {
        "occupied": []
    }


def test_hold_validation_errors(network):
    client = _client(network)

    invalid_class = client.post("/booking/hold", json=[_ticket("10A", "premium")], headers=ALICE)
    assert invalid_class.status_code == 400
    assert invalid_class.json()["detail"]["fare_class"] == "premium"

    assert client.post("/booking/hold", json=[], headers=ALICE).status_code == 400
    assert client.post("/booking/hold", json=[_ticket("1A")], headers=ALICE).status_code == 400


def test_checkout_flow(network):
    client = _client(network)
    client.post("/booking/hold", json=[_ticket("10A", extra_bags=1)], headers=ALICE)

    response = client.post(
        "/checkout/tickets",
        json=[{"flight_number": "OS101", "seat_code": "10A", "first_name": "Alice", "last_name": "Smith"}],
        headers=ALICE,
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["transaction_ref"]
    assert payload["tickets"][0]["price"] == 97.0

    again = client.post(
        "/checkout/tickets",
        json=[{"flight_number": "OS101", "seat_code": "10A"}],
        headers=ALICE,
    )
    assert again.status_code == 409


def test_checkout_payment_declined(monkeypatch, network):
    def decline(session, traveler_id, tickets):
        raise PaymentDeclinedError("card declined")

    monkeypatch.setattr(web, "finalize_holds", decline)
    client = _client(network)

    response = client.post(
        "/checkout/tickets", json=[{"flight_number": "OS101", "seat_code": "10A"}], headers=ALICE
    )

    assert response.status_code == 402


def test_storage_failures_are_retried_once(monkeypatch, network):
    calls = []

    def locked(*args, **kwargs):
        calls.append(args)
        raise StorageError("database is locked")

    monkeypatch.setattr(web, "reserve_seats", locked)
    client = _client(network)

    response = client.post("/booking/hold", json=[_ticket("10A")], headers=ALICE)

    assert response.status_code == 503
    assert len(calls) == 2


def test_hold_on_unknown_flight_is_not_found(network):
    client = _client(network)

    response = client.post(
        "/booking/hold",
        json=[{"flight_number": "XX999", "seat_code": "10A", "fare_class": "economy"}],
        headers=ALICE,
    )

    assert response.status_code == 404


def test_solutions_accept_utc_designator(network):
    client = _client(network)

    response = client.get(
        "/solutions",
        params={**SEARCH, "departure": "2030-05-01T07:00:00Z", "return_date": "2030-05-03T09:00:00+02:00"},
    )

    assert response.status_code == 200
    outbound = response.json()["outbound"]
    assert [leg["flight_number"] for leg in outbound[0]["flights"]] == ["OS101", "OS205"]
