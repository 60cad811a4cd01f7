"""FastAPI application exposing search, seat availability, holds and checkout."""
from __future__ import annotations

import logging
from datetime import datetime
from io import BytesIO, StringIO
from typing import Callable, Dict, Iterable, List, Literal, Optional, TypeVar

import pandas as pd
from fastapi import Body, FastAPI, Header, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from .database import init_db, read_scope, session_scope
from .errors import (
    ConflictError,
    ExpiredHoldError,
    InvalidFareClassError,
    NotFoundError,
    PaymentDeclinedError,
    StorageError,
    ValidationError,
)
from .holds import (
    HOLD_TTL,
    SeatRequest,
    TicketRequest,
    finalize_holds,
    occupied_seats,
    reserve_seats,
)
from .schedule import get_aircraft_model
from .search import Itinerary, search, search_round_trip
from .seatmap import seat_map_for_model

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HoldTicket(BaseModel):
    flight_number: str = ""
    seat_code: str = ""
    fare_class: str = ""
    price: Optional[float] = Field(default=None, description="Client-side price, recomputed server side")
    first_name: str = ""
    last_name: str = ""
    extra_bags: int = Field(default=0, ge=0)


class CheckoutTicket(BaseModel):
    flight_number: str
    seat_code: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    extra_bags: Optional[int] = Field(default=None, ge=0)


def _itineraries_frame(itineraries: Iterable[Itinerary], direction: str) -> pd.DataFrame:
    data: List[Dict[str, object]] = []
    for option, itinerary in enumerate(itineraries, start=1):
        payload = itinerary.as_dict()
        for leg in payload["flights"]:
            data.append(
                {
                    "Direction": direction,
                    "Option": option,
                    "Flight": leg["flight_number"],
                    "Carrier": leg["carrier"],
                    "From": leg["origin"],
                    "To": leg["destination"],
                    "Departure": leg["departure"],
                    "Arrival": leg["arrival"],
                    "Aircraft": leg["aircraft_model"],
                    "Distance (km)": leg["distance_km"],
                    "Total Duration": payload["total_duration"],
                    "Price": payload["price"],
                }
            )
    return pd.DataFrame(data)


def create_app(session_factory: Optional[sessionmaker[Session]] = None) -> FastAPI:
    """Return an application bound to ``session_factory`` (the configured database by default)."""

    factory = session_factory or init_db()
    app = FastAPI(title="Airbook", description="Itinerary search and seat holds")

    def run(operation: Callable[[Session], T], *, read_only: bool = False) -> T:
        # retried once on lock timeouts
        scope = read_scope if read_only else session_scope
        for attempt in (1, 2):
            try:
                with scope(factory) as session:
                    return operation(session)
            except StorageError as exc:
                if attempt == 2:
                    logger.exception("storage failure after retry")
                    raise HTTPException(status_code=503, detail=str(exc)) from exc
                logger.warning("storage failure, retrying once: %s", exc)
        raise AssertionError("unreachable")  # pragma: no cover

    def require_traveler(traveler_id: Optional[str]) -> str:
        if not traveler_id or not traveler_id.strip():
            raise HTTPException(status_code=401, detail="Traveler identity required")
        return traveler_id.strip()

    def find(origin: str, destination: str, departure: datetime, return_date: Optional[datetime]):
        def operation(session: Session):
            if return_date is None:
                return search(session, origin, destination, departure), None
            result = search_round_trip(session, origin, destination, departure, return_date)
            return result.outbound, result.inbound

        try:
            return run(operation, read_only=True)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/solutions")
    def solutions(
        origin: str = Query(..., description="Origin IATA code"),
        destination: str = Query(..., description="Destination IATA code"),
        departure: datetime = Query(..., description="Earliest departure instant"),
        return_date: Optional[datetime] = Query(None, description="Earliest return instant"),
    ):
        outbound, inbound = find(origin, destination, departure, return_date)
        if inbound is None:
            return [itinerary.as_dict() for itinerary in outbound]
        return {
            "outbound": [itinerary.as_dict() for itinerary in outbound],
            "return": [itinerary.as_dict() for itinerary in inbound],
        }

    @app.get("/solutions/download/{file_format}")
    def download(
        file_format: Literal["csv", "xlsx"],
        origin: str,
        destination: str,
        departure: datetime,
        return_date: Optional[datetime] = None,
    ) -> StreamingResponse:
        outbound, inbound = find(origin, destination, departure, return_date)
        frames = [_itineraries_frame(outbound, "outbound")]
        if inbound is not None:
            frames.append(_itineraries_frame(inbound, "return"))
        dataframe = pd.concat(frames, ignore_index=True)

        filename = f"{origin.lower()}_{destination.lower()}_{departure:%Y%m%d}.{file_format}"
        headers = {"Content-Disposition": f"attachment; filename=\"{filename}\""}

        if file_format == "csv":
            buffer = StringIO()
            dataframe.to_csv(buffer, index=False)
            buffer.seek(0)
            return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)

        binary = BytesIO()
        with pd.ExcelWriter(binary, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name="Itineraries")
        binary.seek(0)
        return StreamingResponse(
            binary,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    @app.get("/booking/configuration")
    def configuration(model: str = Query(..., description="Aircraft model name")):
        def operation(session: Session):
            row = get_aircraft_model(session, model.strip())
            if row is None:
                return None
            return {
                "name": row.name,
                "layout": row.layout,
                "total_seats": row.total_seats,
                "seats_first": row.seats_first,
                "seats_business": row.seats_business,
                "seats_economy": row.seats_economy,
                "seats": [
                    {
                        "code": seat.code,
                        "row": seat.row,
                        "letter": seat.letter,
                        "fare_class": seat.fare_class.value,
                        "position": seat.position,
                    }
                    for seat in seat_map_for_model(row)
                ],
            }

        try:
            payload = run(operation, read_only=True)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if payload is None:
            raise HTTPException(status_code=404, detail=f"Unknown aircraft model '{model}'")
        return payload

    @app.get("/booking/occupied")
    def occupied(
        flight: str = Query(..., description="Flight number"),
        x_traveler_id: Optional[str] = Header(None),
    ):
        traveler_id = require_traveler(x_traveler_id)
        seats = run(
            lambda session: occupied_seats(session, flight, traveler_id), read_only=True
        )
        return {"occupied": seats}

    @app.post("/booking/hold")
    def hold(
        tickets: List[HoldTicket] = Body(...),
        legs_in_itinerary: int = Query(1, ge=1),
        x_traveler_id: Optional[str] = Header(None),
    ):
        traveler_id = require_traveler(x_traveler_id)
        if not tickets:
            raise HTTPException(status_code=400, detail="No seats requested")
        flight_number = tickets[0].flight_number
        requests = [
            SeatRequest(
                seat_code=ticket.seat_code,
                fare_class=ticket.fare_class,
                first_name=ticket.first_name,
                last_name=ticket.last_name,
                extra_bags=ticket.extra_bags,
            )
            for ticket in tickets
        ]

        def operation(session: Session):
            holds = reserve_seats(
                session,
                flight_number,
                traveler_id,
                requests,
                legs_in_itinerary=legs_in_itinerary,
            )
            return [
                {"seat_code": h.seat_code, "fare_class": h.fare_class, "price": float(h.price)}
                for h in holds
            ]

        try:
            held = run(operation)
        except ConflictError as exc:
            raise HTTPException(
                status_code=409,
                detail={"message": str(exc), "occupied": exc.occupied},
            ) from exc
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except InvalidFareClassError as exc:
            raise HTTPException(
                status_code=400,
                detail={"message": str(exc), "fare_class": exc.token},
            ) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "success": True,
            "flight_number": flight_number,
            "expires_in_seconds": int(HOLD_TTL.total_seconds()),
            "seats": held,
        }

    @app.post("/checkout/tickets")
    def checkout(
        tickets: List[CheckoutTicket] = Body(...),
        x_traveler_id: Optional[str] = Header(None),
    ):
        traveler_id = require_traveler(x_traveler_id)
        requests = [
            TicketRequest(
                flight_number=ticket.flight_number,
                seat_code=ticket.seat_code,
                first_name=ticket.first_name,
                last_name=ticket.last_name,
                extra_bags=ticket.extra_bags,
            )
            for ticket in tickets
        ]

        def operation(session: Session):
            rows = finalize_holds(session, traveler_id, requests)
            return {
                "transaction_ref": rows[0].transaction_ref,
                "tickets": [
                    {
                        "ticket_number": row.ticket_number,
                        "flight_number": row.flight_number,
                        "seat_code": row.seat_code,
                        "price": float(row.price),
                    }
                    for row in rows
                ],
            }

        try:
            return run(operation)
        except ExpiredHoldError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except PaymentDeclinedError as exc:
            raise HTTPException(status_code=402, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    return app


__all__ = ["create_app"]
