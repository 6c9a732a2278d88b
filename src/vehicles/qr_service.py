import json
from io import BytesIO

import qrcode
from qrcode import constants
from PIL import Image
from sqlalchemy.orm import Session

from src.exceptions import Forbidden, NotFound, PreconditionFailed
from src.vehicles.service import VehicleService


def barcode_payload(route_id: int, seat_id: int) -> str:
    """The string printed on a seat's QR sticker and read back by the scanner"""
    return json.dumps({"routeId": route_id, "seatId": seat_id}, separators=(",", ":"))


def render_qr_png(data: str, size: int = 300, border: int = 4) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=constants.ERROR_CORRECT_M,
        box_size=10,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    qr_image = qr.make_image(fill_color="black", back_color="white").get_image()
    qr_image = qr_image.resize((size, size), Image.LANCZOS)

    buffer = BytesIO()
    qr_image.save(buffer, format="PNG")
    return buffer.getvalue()


class SeatQRService:
    """QR stickers for seats, owner-only"""

    @staticmethod
    def get_seat_qr(db: Session, seat_id: int, requester_id: int, size: int = 300) -> bytes:
        seat = VehicleService.get_seat(db, seat_id)
        if not seat:
            raise NotFound("Seat not found")
        vehicle = seat.vehicle
        if vehicle.user_id != requester_id:
            raise Forbidden("You can only print codes for your own vehicle")
        if vehicle.route is None or vehicle.route.deleted_at is not None:
            raise PreconditionFailed("You need to register a route first")

        return render_qr_png(barcode_payload(vehicle.route.id, seat.id), size=size)
