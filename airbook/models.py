"""SQLAlchemy models for the schedule store and the seat-hold table."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention used for every stored instant."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware instant to the stored naive-UTC form; naive values pass through."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Airport(Base):
    __tablename__ = "airports"

    iata_code: Mapped[str] = mapped_column(String(3), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    city: Mapped[str] = mapped_column(String(80), nullable=False)
    country: Mapped[str] = mapped_column(String(80), default="", nullable=False)


class AircraftModel(Base):
    __tablename__ = "aircraft_models"
    __table_args__ = (
        CheckConstraint("seats_first >= 0", name="ck_seats_first_non_negative"),
        CheckConstraint("seats_business >= 0", name="ck_seats_business_non_negative"),
        CheckConstraint("seats_economy >= 0", name="ck_seats_economy_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(60), primary_key=True)
    layout: Mapped[str] = mapped_column(String(10), nullable=False)
    seats_first: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    seats_business: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    seats_economy: Mapped[int] = mapped_column(Integer, nullable=False)

    @property
    def total_seats(self) -> int:
        return self.seats_first + self.seats_business + self.seats_economy


class Route(Base):
    __tablename__ = "routes"
    __table_args__ = (
        CheckConstraint("origin <> destination", name="ck_route_distinct_airports"),
        CheckConstraint("duration_minutes > 0", name="ck_route_duration_positive"),
        CheckConstraint("distance_km > 0", name="ck_route_distance_positive"),
    )

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    origin: Mapped[str] = mapped_column(ForeignKey("airports.iata_code"), nullable=False)
    destination: Mapped[str] = mapped_column(ForeignKey("airports.iata_code"), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    distance_km: Mapped[int] = mapped_column(Integer, nullable=False)
    carrier: Mapped[str] = mapped_column(String(60), nullable=False)

    origin_airport: Mapped[Airport] = relationship(foreign_keys=[origin])
    destination_airport: Mapped[Airport] = relationship(foreign_keys=[destination])
    flights: Mapped[List["Flight"]] = relationship(back_populates="route")


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        UniqueConstraint("flight_number", name="uq_flight_number"),
        Index("ix_flights_departure_time", "departure_time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_number: Mapped[str] = mapped_column(String(16), nullable=False)
    route_code: Mapped[str] = mapped_column(ForeignKey("routes.code"), nullable=False)
    departure_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    aircraft_model: Mapped[str] = mapped_column(ForeignKey("aircraft_models.name"), nullable=False)

    route: Mapped[Route] = relationship(back_populates="flights")
    aircraft: Mapped[AircraftModel] = relationship()
    holds: Mapped[List["SeatHold"]] = relationship(back_populates="flight", cascade="all, delete-orphan")


class SeatHold(Base):
    """A seat reservation: live while ``expires_at`` is in the future, ticketed when it is NULL."""

    __tablename__ = "seat_holds"
    __table_args__ = (
        UniqueConstraint("flight_number", "seat_code", name="uq_hold_flight_seat"),
        Index("ix_seat_holds_flight_expiry", "flight_number", "expires_at"),
        CheckConstraint("extra_bags >= 0", name="ck_extra_bags_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(24), nullable=False)
    flight_number: Mapped[str] = mapped_column(
        ForeignKey("flights.flight_number", ondelete="CASCADE"), nullable=False
    )
    seat_code: Mapped[str] = mapped_column(String(4), nullable=False)
    traveler_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fare_class: Mapped[str] = mapped_column(String(10), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    extra_bags: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    transaction_ref: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    flight: Mapped[Flight] = relationship(back_populates="holds")

    @property
    def is_ticketed(self) -> bool:
        return self.expires_at is None

    def is_live(self, now: datetime) -> bool:
        return self.expires_at is None or self.expires_at >= now
