from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from src.auth.dependencies import get_current_user, require_driver
from src.database import get_db
from src.exceptions import NotFound
from src.rides.schemas import StartRideRequest, RideOut, RideSettlement, ActiveRideOut, AvailableRideOut
from src.rides.service import RideService

router = APIRouter()

@router.post("/start", response_model=RideOut, status_code=status.HTTP_201_CREATED)
def start_ride(
    request: StartRideRequest,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Start a ride on the current driver's route"""
    return RideService.start_ride(db, current_user.id, request.direction)

@router.post("/{ride_id}/complete", response_model=RideSettlement)
def complete_ride(
    ride_id: int,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Complete the ride and credit app earnings to the driver's wallet"""
    return RideService.complete_ride(db, ride_id, current_user.id)

@router.get("/active", response_model=ActiveRideOut)
def get_active_ride(current_user = Depends(require_driver), db: Session = Depends(get_db)):
    """Seat map of the current driver's active ride"""
    active = RideService.get_active_ride(db, current_user.id)
    if active is None:
        raise NotFound("No active ride")
    return active

@router.get("/available", response_model=List[AvailableRideOut])
def list_available_rides(current_user = Depends(get_current_user), db: Session = Depends(get_db)):
    return RideService.list_available_rides(db)
