"""Command line interface for the booking engine."""
from __future__ import annotations

import argparse
import sys
from datetime import datetime
from typing import Iterable, List

from tabulate import tabulate

from . import config
from .dataset import generate_sample_schedule
from .database import init_db, read_scope
from .errors import AirbookError
from .holds import occupied_seats
from .reaper import sweep_once
from .search import Itinerary, search, search_round_trip


def _parse_instant(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid ISO timestamp '{value}'") from exc


def _render_itineraries(title: str, itineraries: Iterable[Itinerary]) -> str:
    rows: List[List[object]] = []
    for option, itinerary in enumerate(itineraries, start=1):
        payload = itinerary.as_dict()
        route = " > ".join(
            [payload["flights"][0]["origin"]] + [leg["destination"] for leg in payload["flights"]]
        )
        rows.append(
            [
                option,
                " / ".join(leg["flight_number"] for leg in payload["flights"]),
                route,
                payload["flights"][0]["departure"],
                payload["flights"][-1]["arrival"],
                payload["total_duration"],
                payload["stops"],
                payload["price"],
            ]
        )
    if not rows:
        return f"{title}: no itineraries found"
    headers = ["#", "Flights", "Route", "Departure", "Arrival", "Duration", "Stops", "Price"]
    return f"{title}\n" + tabulate(rows, headers=headers, tablefmt="github")


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search flights and manage seat holds.")
    parser.add_argument(
        "--database",
        default=config.DATABASE_URL,
        help="SQLAlchemy database URL (default: AIRBOOK_DATABASE_URL or a local SQLite file).",
    )
    parser.add_argument("--log-level", default=None, help="Override AIRBOOK_LOG_LEVEL.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables.")

    seed = commands.add_parser("seed", help="Load a sample schedule.")
    seed.add_argument("--days", type=int, default=7, help="Number of days of flights (default: 7).")
    seed.add_argument("--start", type=_parse_instant, default=None, help="First day (ISO date).")

    find = commands.add_parser("search", help="Search itineraries between two airports.")
    find.add_argument("origin", help="Origin IATA code.")
    find.add_argument("destination", help="Destination IATA code.")
    find.add_argument("--departure", type=_parse_instant, required=True, help="Earliest departure (ISO).")
    find.add_argument("--return", dest="return_date", type=_parse_instant, default=None, help="Earliest return (ISO).")

    occupied = commands.add_parser("occupied", help="List seats a traveler cannot pick.")
    occupied.add_argument("flight", help="Flight number.")
    occupied.add_argument("--traveler", required=True, help="Traveler identifier.")

    commands.add_parser("reap", help="Release every expired hold once.")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    config.configure_logging(args.log_level)
    try:
        session_factory = init_db(args.database)
        if args.command == "init-db":
            print(f"Database ready at {args.database}")
        elif args.command == "seed":
            summary = generate_sample_schedule(session_factory, start=args.start, days=args.days)
            print(tabulate(sorted(summary.items()), headers=["Table", "Rows"], tablefmt="github"))
        elif args.command == "search":
            with read_scope(session_factory) as session:
                if args.return_date is None:
                    outbound = search(session, args.origin, args.destination, args.departure)
                    print(_render_itineraries("Outbound", outbound))
                else:
                    result = search_round_trip(
                        session, args.origin, args.destination, args.departure, args.return_date
                    )
                    print(_render_itineraries("Outbound", result.outbound))
                    print()
                    print(_render_itineraries("Return", result.inbound))
        elif args.command == "occupied":
            with read_scope(session_factory) as session:
                seats = occupied_seats(session, args.flight, args.traveler)
            print(", ".join(seats) if seats else "No occupied seats")
        elif args.command == "reap":
            purged = sweep_once(session_factory)
            print(f"Released {purged} expired holds")
    except AirbookError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
