import logging

from src.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure root logging once for the process"""
    logging.basicConfig(format=LOG_FORMAT, level=(level or settings.LOG_LEVEL).upper())


def log_event(logger: logging.Logger, event: str, **fields) -> None:
    """
    Log a committed state change as a single line.

    Args:
        logger: Module logger of the caller.
        event: Short dotted event name, e.g. ``booking.created``.
        **fields: Identifiers and amounts attached to the event.

    Example:
        log_event(logger, "ride.started", ride_id=4, route_id=2)
        -> "ride.started ride_id=4 route_id=2"
    """
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    logger.info(f"{event} {details}".rstrip())
