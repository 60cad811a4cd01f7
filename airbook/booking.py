"""Client-side booking flow state.

A ``BookingSession`` tracks the chosen itineraries, the legs that still need
seats and which passenger sits where. It is advisory only: the server acts
on the seat codes it is sent and re-checks everything else.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import ValidationError
from .holds import SeatRequest, TicketRequest
from .schedule import FlightInstance
from .search import Itinerary

ONE_WAY = "one_way"
ROUND_TRIP = "round_trip"

SOLO = "solo"
OUTBOUND = "outbound"
RETURN = "return"
_DIRECTIONS = (SOLO, OUTBOUND, RETURN)


@dataclass
class PassengerInfo:
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    extra_bags: int = 0


@dataclass
class SeatAssignment:
    seat_code: str
    fare_class: str
    passenger_index: int
    seat_price: Optional[int] = None


@dataclass
class BookingSegment:
    """One leg of a chosen itinerary for which seats must be picked."""

    id: str
    flight: FlightInstance
    direction: str
    segment_index: int
    legs_in_itinerary: int
    seats: List[SeatAssignment] = field(default_factory=list)


@dataclass
class BookingSession:
    trip_type: str
    passenger_count: int
    passengers: List[PassengerInfo] = field(default_factory=list)
    outbound: Optional[Itinerary] = None
    inbound: Optional[Itinerary] = None
    segments: List[BookingSegment] = field(default_factory=list)
    position: int = 0

    @classmethod
    def start(cls, trip_type: str, passenger_count: int) -> "BookingSession":
        if trip_type not in (ONE_WAY, ROUND_TRIP):
            raise ValidationError(f"Unknown trip type '{trip_type}'")
        count = max(1, passenger_count)
        return cls(
            trip_type=trip_type,
            passenger_count=count,
            passengers=[PassengerInfo() for _ in range(count)],
        )

    def set_passengers(self, passengers: List[PassengerInfo]) -> None:
        if len(passengers) != self.passenger_count:
            raise ValidationError(
                f"Expected {self.passenger_count} passengers, got {len(passengers)}"
            )
        self.passengers = [
            PassengerInfo(
                first_name=p.first_name.strip(),
                last_name=p.last_name.strip(),
                date_of_birth=p.date_of_birth,
                extra_bags=p.extra_bags or 0,
            )
            for p in passengers
        ]

    def set_itinerary(self, direction: str, itinerary: Itinerary) -> None:
        if direction not in _DIRECTIONS:
            raise ValidationError(f"Unknown direction '{direction}'")
        if direction == SOLO:
            self.trip_type = ONE_WAY
            self.outbound = itinerary
            self.inbound = None
        elif direction == OUTBOUND:
            self.outbound = itinerary
        else:
            self.inbound = itinerary
        self._recompute_segments()

    def clear_itinerary(self, direction: str) -> None:
        if direction == SOLO:
            self.outbound = None
            self.inbound = None
        elif direction == OUTBOUND:
            self.outbound = None
        elif direction == RETURN:
            self.inbound = None
        else:
            raise ValidationError(f"Unknown direction '{direction}'")
        self._recompute_segments()

    def _recompute_segments(self) -> None:
        segments: List[BookingSegment] = []

        def push(direction: str, itinerary: Optional[Itinerary]) -> None:
            if itinerary is None:
                return
            for index, leg in enumerate(itinerary.legs):
                segments.append(
                    BookingSegment(
                        id=f"{direction}-{leg.flight_number}-{index}",
                        flight=leg,
                        direction=direction,
                        segment_index=index,
                        legs_in_itinerary=len(itinerary.legs),
                    )
                )

        if self.outbound is not None and self.inbound is None:
            push(SOLO, self.outbound)
        else:
            push(OUTBOUND, self.outbound)
            push(RETURN, self.inbound)
        self.segments = segments
        self.position = 0

    @property
    def current_segment(self) -> Optional[BookingSegment]:
        if 0 <= self.position < len(self.segments):
            return self.segments[self.position]
        return None

    def next_segment(self) -> bool:
        if self.position < len(self.segments) - 1:
            self.position += 1
            return True
        return False

    def prev_segment(self) -> bool:
        if self.position > 0:
            self.position -= 1
            return True
        return False

    def assign_seats(self, assignments: List[SeatAssignment]) -> None:
        segment = self.current_segment
        if segment is None:
            raise ValidationError("No segment is awaiting seat selection")
        indexes = [a.passenger_index for a in assignments]
        if len(set(indexes)) != len(indexes):
            raise ValidationError("Each passenger can only take one seat per segment")
        for index in indexes:
            if not 0 <= index < self.passenger_count:
                raise ValidationError(f"Passenger index {index} is out of range")
        segment.seats = list(assignments)

    def is_seat_selection_complete(self) -> bool:
        return bool(self.segments) and all(
            len(segment.seats) == self.passenger_count for segment in self.segments
        )

    def seat_requests(self) -> List[SeatRequest]:
        """Hold requests for the current segment's assignments."""

        segment = self.current_segment
        if segment is None:
            return []
        requests: List[SeatRequest] = []
        for assignment in segment.seats:
            passenger = self.passengers[assignment.passenger_index]
            requests.append(
                SeatRequest(
                    seat_code=assignment.seat_code,
                    fare_class=assignment.fare_class,
                    first_name=passenger.first_name,
                    last_name=passenger.last_name,
                    extra_bags=passenger.extra_bags,
                )
            )
        return requests

    def ticket_requests(self) -> List[TicketRequest]:
        """Checkout payload covering every segment's seats."""

        tickets: List[TicketRequest] = []
        for segment in self.segments:
            for assignment in segment.seats:
                passenger = self.passengers[assignment.passenger_index]
                tickets.append(
                    TicketRequest(
                        flight_number=segment.flight.flight_number,
                        seat_code=assignment.seat_code,
                        first_name=passenger.first_name,
                        last_name=passenger.last_name,
                        extra_bags=passenger.extra_bags,
                    )
                )
        return tickets

    def summary(self) -> Dict[str, object]:
        return {
            "trip_type": self.trip_type,
            "passengers": self.passenger_count,
            "segments": [
                {
                    "id": segment.id,
                    "flight_number": segment.flight.flight_number,
                    "direction": segment.direction,
                    "seats": [a.seat_code for a in segment.seats],
                }
                for segment in self.segments
            ],
            "position": self.position,
        }
