"""Exception hierarchy shared by the search engine and the hold manager."""
from __future__ import annotations

from typing import Iterable, List, Optional


class AirbookError(RuntimeError):
    """Base class for every error raised by the booking engine."""


class ValidationError(AirbookError, ValueError):
    """Raised when a request is missing data or carries malformed values."""


class InvalidFareClassError(ValidationError):
    """Raised when a fare class token cannot be mapped to a known class."""

    def __init__(self, token: Optional[str]):
        self.token = token
        super().__init__(f"Invalid fare class: {token!r}")


class NotFoundError(ValidationError):
    """Raised when a referenced flight or aircraft model does not exist."""


class ConflictError(AirbookError):
    """Raised when requested seats are held or ticketed by another traveler."""

    def __init__(self, flight_number: str, occupied: Iterable[str]):
        self.flight_number = flight_number
        self.occupied: List[str] = sorted(set(occupied))
        super().__init__(
            f"Seats already occupied on {flight_number}: {', '.join(self.occupied)}"
        )


class ExpiredHoldError(AirbookError):
    """Raised when finalizing a seat whose hold lapsed or never existed."""

    def __init__(self, flight_number: str, seat_code: str):
        self.flight_number = flight_number
        self.seat_code = seat_code
        super().__init__(f"Hold expired or invalid for seat {seat_code} on {flight_number}")


class StorageError(AirbookError):
    """Raised when the relational store fails to complete a transaction."""


class PaymentDeclinedError(AirbookError):
    """Raised when the payment authority declines a charge."""


__all__ = [
    "AirbookError",
    "ValidationError",
    "InvalidFareClassError",
    "NotFoundError",
    "ConflictError",
    "ExpiredHoldError",
    "StorageError",
    "PaymentDeclinedError",
]
