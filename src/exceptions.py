"""
Error taxonomy for the booking engine.

Every business-rule failure is detected before any write and raised as one of
the APIException subclasses below; FastAPI renders them with their status
code and an ``X-Error`` header naming the class. ``handle()`` normalises raw
store and validation errors into the same taxonomy.
"""

import logging
from traceback import format_exception

from fastapi import HTTPException, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


def log_exception(e: Exception) -> None:
    """Log an exception with its traceback"""
    detail = "".join(format_exception(type(e), e, e.__traceback__))
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Subclasses set ``status_code`` and a default ``detail``; the ``X-Error``
    header is derived from the class name.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None

    def __init__(self, detail=None, **kwargs):
        kwargs.setdefault("status_code", type(self).status_code)
        kwargs.setdefault("headers", {"X-Error": type(self).__name__})
        super().__init__(detail=detail if detail is not None else type(self).detail, **kwargs)

    @property
    def error(self) -> str:
        return type(self).__name__


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Re-raise ``e`` as an APIException where a mapping exists.

    Integrity violations and stale optimistic-lock writes mean another
    request got there first, so both surface as Conflict.
    """
    if isinstance(e, APIException):
        raise e
    if isinstance(e, IntegrityError):
        raise Conflict("The record was modified by a concurrent request") from e
    if isinstance(e, StaleDataError):
        raise Conflict("The record was modified by a concurrent request") from e
    if isinstance(e, PydanticValidationError):
        raise ValidationError(detail=e.errors()) from e

    log_exception(e)
    raise e


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class Unauthenticated(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Could not validate credentials"

    def __init__(self, detail=None):
        super().__init__(detail, headers={"X-Error": "Unauthenticated", "WWW-Authenticate": "Bearer"})


class Forbidden(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"


class InvalidState(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "The resource is not in a state that allows this action"


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    detail = "The resource is already taken"


class InsufficientFunds(APIException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    detail = "Insufficient wallet balance"


class InvalidSeat(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "This seat cannot be booked"


class PreconditionFailed(APIException):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    detail = "A required resource is missing"


class ValidationError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Invalid input"


# Lookup-layer refinements
class AlreadyBooked(Conflict):
    detail = "You already have a booking for this ride"


class RideFull(Conflict):
    detail = "No available seats on this ride"


class SeatUnavailable(Conflict):
    detail = "Seat is not available"


class DriverSeatReserved(InvalidSeat):
    detail = "Seat 1 is reserved for the driver"
