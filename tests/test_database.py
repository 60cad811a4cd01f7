from sqlalchemy import event

from airbook.database import read_scope, session_scope
from airbook.holds import SeatRequest, occupied_seats, reserve_seats

from conftest import DEPARTURE


def test_read_scope_begins_without_the_write_lock(network):
    engine = network.kw["bind"]
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    try:
        with read_scope(network) as session:
            occupied_seats(session, "OS101", "alice")
        with session_scope(network) as session:
            occupied_seats(session, "OS101", "alice")
    finally:
        event.remove(engine, "before_cursor_execute", record)

    assert [s for s in statements if s.startswith("BEGIN")] == ["BEGIN", "BEGIN IMMEDIATE"]


def test_reads_proceed_while_a_hold_is_in_flight(network):
    writer = network()
    try:
        reserve_seats(writer, "OS101", "alice", [SeatRequest("10A", "economy")], now=DEPARTURE)

        with read_scope(network) as session:
            assert occupied_seats(session, "OS101", "bob", now=DEPARTURE) == []
    finally:
        writer.rollback()
        writer.close()
