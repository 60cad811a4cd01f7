"""Time-bounded seat holds and their conversion into tickets.

A seat on a flight is free when no row exists for it (or its row has
expired), held while its row's ``expires_at`` lies in the future, and
ticketed once ``expires_at`` is NULL. Every reservation attempt runs as one
unit of work: purge expired rows for the flight, drop the traveler's own
previous holds, check the requested seats against everyone else's live rows,
validate classes, then insert. Any failure rolls the whole attempt back.
The unique constraint on ``(flight_number, seat_code)`` backs up the
conflict check when two attempts race.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from sqlalchemy import ColumnElement, delete, or_, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from .errors import (
    ConflictError,
    ExpiredHoldError,
    NotFoundError,
    PaymentDeclinedError,
    StorageError,
    ValidationError,
)
from .fares import FareClass, bag_fee, price_per_seat
from .models import SeatHold, utcnow
from .schedule import get_aircraft_model, get_flight
from .seatmap import index_seats, seat_map_for_model

logger = logging.getLogger(__name__)

HOLD_TTL = timedelta(minutes=15)


@dataclass
class SeatRequest:
    """One seat a traveler wants to hold, with the passenger it is for."""

    seat_code: str
    fare_class: str
    first_name: str = ""
    last_name: str = ""
    extra_bags: int = 0


@dataclass
class TicketRequest:
    """One held seat to convert into a ticket at checkout."""

    flight_number: str
    seat_code: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    extra_bags: Optional[int] = None


@dataclass
class PaymentResult:
    success: bool
    transaction_ref: str
    message: str = ""


def mock_payment_gateway(amount: Decimal, traveler_id: str) -> PaymentResult:
    """Stand-in payment authority that always confirms the charge."""

    return PaymentResult(success=True, transaction_ref=f"TXN-{traveler_id}-{int(amount * 100)}")


def _live(now: datetime) -> ColumnElement[bool]:
    return or_(SeatHold.expires_at.is_(None), SeatHold.expires_at >= now)


def _require(value: Optional[str], message: str) -> str:
    candidate = (value or "").strip()
    if not candidate:
        raise ValidationError(message)
    return candidate


def purge_expired(
    session: Session,
    *,
    flight_number: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Delete lapsed holds, optionally only for one flight. Tickets are never touched."""

    now = now or utcnow()
    stmt = delete(SeatHold).where(SeatHold.expires_at.is_not(None), SeatHold.expires_at < now)
    if flight_number is not None:
        stmt = stmt.where(SeatHold.flight_number == flight_number)
    purged = session.execute(stmt).rowcount or 0
    if purged:
        logger.debug("purged %d expired holds (flight=%s)", purged, flight_number or "*")
    return purged


def _conflicting_seats(
    session: Session, flight_number: str, seat_codes: Sequence[str], now: datetime
) -> List[str]:
    stmt = select(SeatHold.seat_code).where(
        SeatHold.flight_number == flight_number,
        SeatHold.seat_code.in_(seat_codes),
        _live(now),
    )
    return sorted(session.scalars(stmt))


def reserve_seats(
    session: Session,
    flight_number: str,
    traveler_id: str,
    requests: Sequence[SeatRequest],
    *,
    legs_in_itinerary: int = 1,
    now: Optional[datetime] = None,
) -> List[SeatHold]:
    """Hold ``requests`` on ``flight_number`` for ``traveler_id`` for ``HOLD_TTL``.

    Raises ``ConflictError`` listing every requested seat that is held or
    ticketed by someone else, ``InvalidFareClassError`` for unknown class
    tokens and ``ValidationError`` for malformed requests. Nothing is
    written unless every seat can be held.
    """

    flight_number = _require(flight_number, "Flight number is required")
    traveler_id = _require(traveler_id, "Traveler identity is required")
    seat_codes = [(request.seat_code or "").strip().upper() for request in requests]
    seat_codes = [code for code in seat_codes if code]
    if not seat_codes:
        raise ValidationError("No seats requested")
    if len(seat_codes) != len(requests):
        raise ValidationError("Every seat request needs a seat code")
    if len(set(seat_codes)) != len(seat_codes):
        raise ValidationError("A seat can only be requested once per hold")
    now = now or utcnow()

    try:
        with session.begin_nested():
            flight = get_flight(session, flight_number)
            if flight is None:
                raise NotFoundError(f"Unknown flight '{flight_number}'")

            purge_expired(session, flight_number=flight_number, now=now)
            session.execute(
                delete(SeatHold).where(
                    SeatHold.flight_number == flight_number,
                    SeatHold.traveler_id == traveler_id,
                    SeatHold.expires_at.is_not(None),
                )
            )

            occupied = _conflicting_seats(session, flight_number, seat_codes, now)
            if occupied:
                raise ConflictError(flight_number, occupied)

            fare_classes = [FareClass.parse(request.fare_class) for request in requests]
            model = get_aircraft_model(session, flight.aircraft_model)
            if model is None:
                raise NotFoundError(f"Unknown aircraft model '{flight.aircraft_model}'")
            seat_map = index_seats(seat_map_for_model(model))
            seats = []
            for code, fare_class in zip(seat_codes, fare_classes):
                seat = seat_map.get(code)
                if seat is None:
                    raise ValidationError(f"Seat {code} does not exist on {flight_number}")
                if seat.fare_class is not fare_class:
                    raise ValidationError(
                        f"Seat {code} is a {seat.fare_class.value} seat, not {fare_class.value}"
                    )
                seats.append(seat)

            expires_at = now + HOLD_TTL
            holds: List[SeatHold] = []
            for request, seat in zip(requests, seats):
                if request.extra_bags < 0:
                    raise ValidationError("Extra bag count cannot be negative")
                price = price_per_seat(
                    flight.distance_km,
                    legs_in_itinerary,
                    seat.fare_class,
                    window_or_aisle=seat.is_window_or_aisle,
                )
                hold = SeatHold(
                    ticket_number=f"{flight_number}-{seat.code}",
                    flight_number=flight_number,
                    seat_code=seat.code,
                    traveler_id=traveler_id,
                    fare_class=seat.fare_class.value,
                    price=Decimal(price),
                    first_name=(request.first_name or "").strip(),
                    last_name=(request.last_name or "").strip(),
                    extra_bags=request.extra_bags,
                    expires_at=expires_at,
                    created_at=now,
                )
                session.add(hold)
                holds.append(hold)
            session.flush()
    except IntegrityError as exc:
        occupied = _conflicting_seats(session, flight_number, seat_codes, now) or seat_codes
        logger.warning("hold race lost on %s for %s: %s", flight_number, traveler_id, occupied)
        raise ConflictError(flight_number, occupied) from exc
    except OperationalError as exc:
        raise StorageError(f"Could not hold seats on {flight_number}: {exc}") from exc
    except ConflictError as exc:
        logger.warning("hold rejected on %s for %s: %s", flight_number, traveler_id, exc.occupied)
        raise

    logger.info(
        "held %s on %s for %s until %s", ", ".join(seat_codes), flight_number, traveler_id, expires_at
    )
    return holds


def occupied_seats(
    session: Session,
    flight_number: str,
    traveler_id: str,
    *,
    now: Optional[datetime] = None,
) -> List[str]:
    """Seats the traveler cannot pick: ticketed, or held live by someone else."""

    now = now or utcnow()
    stmt = select(SeatHold.seat_code).where(
        SeatHold.flight_number == flight_number,
        or_(
            SeatHold.expires_at.is_(None),
            (SeatHold.expires_at >= now) & (SeatHold.traveler_id != traveler_id),
        ),
    )
    return sorted(session.scalars(stmt))


def holds_for_traveler(
    session: Session,
    flight_number: str,
    traveler_id: str,
    *,
    now: Optional[datetime] = None,
) -> List[SeatHold]:
    now = now or utcnow()
    stmt = (
        select(SeatHold)
        .where(
            SeatHold.flight_number == flight_number,
            SeatHold.traveler_id == traveler_id,
            SeatHold.expires_at.is_not(None),
            SeatHold.expires_at >= now,
        )
        .order_by(SeatHold.seat_code)
    )
    return list(session.scalars(stmt))


def _live_hold(
    session: Session,
    flight_number: str,
    seat_code: str,
    traveler_id: str,
    now: datetime,
) -> Optional[SeatHold]:
    stmt = select(SeatHold).where(
        SeatHold.flight_number == flight_number,
        SeatHold.seat_code == seat_code,
        SeatHold.traveler_id == traveler_id,
        SeatHold.expires_at.is_not(None),
        SeatHold.expires_at >= now,
    )
    return session.scalars(stmt).first()


def is_live_hold_owned_by(
    session: Session,
    flight_number: str,
    seat_code: str,
    traveler_id: str,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """True iff ``traveler_id`` holds ``seat_code`` on ``flight_number`` and the hold has not lapsed."""

    row = _live_hold(
        session, flight_number.strip(), seat_code.strip().upper(), traveler_id, now or utcnow()
    )
    return row is not None


def finalize_holds(
    session: Session,
    traveler_id: str,
    tickets: Sequence[TicketRequest],
    *,
    now: Optional[datetime] = None,
    payment_fn: Callable[[Decimal, str], PaymentResult] = mock_payment_gateway,
) -> List[SeatHold]:
    """Charge the traveler and turn each live hold into a permanent ticket.

    Every ticket needs a live hold owned by ``traveler_id``; otherwise
    ``ExpiredHoldError`` is raised and nothing changes.
    """

    traveler_id = _require(traveler_id, "Traveler identity is required")
    if not tickets:
        raise ValidationError("No tickets supplied")
    keys = [(ticket.flight_number.strip(), ticket.seat_code.strip().upper()) for ticket in tickets]
    if len(set(keys)) != len(keys):
        raise ValidationError("A seat can only be ticketed once per checkout")
    now = now or utcnow()

    try:
        with session.begin_nested():
            rows: List[SeatHold] = []
            for flight_number, seat_code in keys:
                row = _live_hold(session, flight_number, seat_code, traveler_id, now)
                if row is None:
                    logger.warning(
                        "finalize refused for %s: no live hold on %s %s",
                        traveler_id,
                        flight_number,
                        seat_code,
                    )
                    raise ExpiredHoldError(flight_number, seat_code)
                rows.append(row)

            totals: List[Decimal] = []
            for ticket, row in zip(tickets, rows):
                extra_bags = row.extra_bags if ticket.extra_bags is None else ticket.extra_bags
                totals.append(Decimal(row.price) + Decimal(bag_fee(extra_bags)))
            amount = sum(totals, Decimal(0))

            result = payment_fn(amount, traveler_id)
            if not result.success:
                raise PaymentDeclinedError(result.message or "payment declined")

            for ticket, row, total in zip(tickets, rows, totals):
                if ticket.first_name is not None:
                    row.first_name = ticket.first_name.strip()
                if ticket.last_name is not None:
                    row.last_name = ticket.last_name.strip()
                if ticket.extra_bags is not None:
                    row.extra_bags = ticket.extra_bags
                row.price = total
                row.expires_at = None
                row.transaction_ref = result.transaction_ref
            session.flush()
    except OperationalError as exc:
        raise StorageError(f"Could not finalize tickets for {traveler_id}: {exc}") from exc

    logger.info("ticketed %d seats for %s (%s)", len(rows), traveler_id, result.transaction_ref)
    return rows


__all__ = [
    "HOLD_TTL",
    "SeatRequest",
    "TicketRequest",
    "PaymentResult",
    "mock_payment_gateway",
    "purge_expired",
    "reserve_seats",
    "occupied_seats",
    "holds_for_traveler",
    "is_live_hold_owned_by",
    "finalize_holds",
]
