import re
import secrets
from typing import Set

from sqlalchemy.orm import Session

from src.config import settings
from src.exceptions import Conflict
from src.models import Seat

SEAT_CODE_PATTERN = re.compile(r"[0-9]{%d}" % settings.SEAT_CODE_LENGTH)


def generate_seat_code() -> str:
    """Random numeric seat code of ``SEAT_CODE_LENGTH`` digits"""
    return "".join(secrets.choice("0123456789") for _ in range(settings.SEAT_CODE_LENGTH))


def is_valid_seat_code(code: str) -> bool:
    return bool(code) and SEAT_CODE_PATTERN.fullmatch(code) is not None


def generate_unique_seat_code(db: Session, taken: Set[str]) -> str:
    """Generate a code unused both in ``taken`` (the current batch) and in the store.

    Seat-code lookups are not scoped to a vehicle, so uniqueness is global,
    including soft-deleted seats whose codes may still be printed somewhere.
    """
    for _ in range(settings.SEAT_CODE_MAX_ATTEMPTS):
        code = generate_seat_code()
        if code in taken:
            continue
        if db.query(Seat.id).filter(Seat.code == code).first() is not None:
            continue
        taken.add(code)
        return code
    raise Conflict("Could not generate a unique seat code")
