from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from src.auth.dependencies import require_driver
from src.database import get_db
from src.exceptions import NotFound, handle
from src.vehicles.schemas import VehicleRegistration, VehicleOut, SeatOut, SeatStatusUpdate
from src.vehicles.service import VehicleService
from src.vehicles.qr_service import SeatQRService

router = APIRouter()

@router.put("/me", response_model=VehicleOut)
def register_vehicle(
    registration: VehicleRegistration,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Register the current driver's vehicle, or update it"""
    try:
        vehicle = VehicleService.register_vehicle(db, current_user.id, registration)
    except Exception as e:
        handle(e)
    db.refresh(vehicle)
    return vehicle

@router.get("/me", response_model=VehicleOut)
def get_my_vehicle(current_user = Depends(require_driver), db: Session = Depends(get_db)):
    vehicle = VehicleService.get_vehicle_by_owner(db, current_user.id)
    if not vehicle:
        raise NotFound("You need to register a vehicle first")
    return vehicle

@router.patch("/seats/{seat_id}", response_model=SeatOut)
def update_seat_status(
    seat_id: int,
    update: SeatStatusUpdate,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Mark a seat available, occupied or under maintenance"""
    return VehicleService.update_seat_status(db, seat_id, update.status, current_user.id)

@router.get("/seats/{seat_id}/qr", response_class=Response)
def get_seat_qr(
    seat_id: int,
    size: int = Query(300, ge=100, le=1000, description="Image size in pixels"),
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """PNG QR code encoding the seat's barcode payload"""
    png = SeatQRService.get_seat_qr(db, seat_id, current_user.id, size=size)
    return Response(content=png, media_type="image/png")
