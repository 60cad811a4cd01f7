"""Active expiry sweeper for seat holds.

Reservation attempts already purge lapsed holds for the flight they touch;
this loop additionally frees seats on flights nobody is currently booking.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from . import config
from .database import init_db
from .errors import StorageError
from .holds import purge_expired

logger = logging.getLogger(__name__)


def sweep_once(session_factory: sessionmaker[Session], *, now: Optional[datetime] = None) -> int:
    """Purge lapsed holds on every flight in a transaction of its own."""

    with session_factory() as session:
        try:
            purged = purge_expired(session, now=now)
            session.commit()
        except OperationalError as exc:
            session.rollback()
            raise StorageError(f"Expiry sweep failed: {exc}") from exc
    if purged:
        logger.info("expiry sweep released %d seats", purged)
    return purged


def reaper_loop(
    session_factory: sessionmaker[Session],
    stop_event: threading.Event,
    interval: float = config.REAPER_INTERVAL_SECONDS,
) -> None:
    """Run ``sweep_once`` every ``interval`` seconds until ``stop_event`` is set."""

    while not stop_event.is_set():
        try:
            sweep_once(session_factory)
        except StorageError as exc:
            logger.warning("%s; retrying in %.0fs", exc, interval)
        stop_event.wait(interval)


def main() -> None:  # pragma: no cover - thin wrapper
    config.configure_logging()
    session_factory = init_db()
    stop = threading.Event()
    logger.info("hold reaper started (interval %.0fs)", config.REAPER_INTERVAL_SECONDS)
    try:
        reaper_loop(session_factory, stop)
    except KeyboardInterrupt:
        stop.set()


if __name__ == "__main__":  # pragma: no cover
    main()
