from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from src.enums import SeatStatus

class VehicleRegistration(BaseModel):
    """Create or update the current driver's vehicle"""
    vehicle_number: str = Field(..., min_length=1, max_length=32)
    vehicle_type: str = Field(..., min_length=1, max_length=50)
    model: Optional[str] = Field(None, max_length=100)
    capacity: int

class SeatStatusUpdate(BaseModel):
    status: SeatStatus

class SeatOut(BaseModel):
    id: int
    seat_number: int
    code: str
    status: SeatStatus

    class Config:
        from_attributes = True

class VehicleOut(BaseModel):
    id: int
    user_id: int
    vehicle_number: str
    vehicle_type: str
    model: Optional[str] = None
    capacity: int
    created_at: Optional[datetime] = None
    seats: List[SeatOut] = []

    class Config:
        from_attributes = True
