from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

class RouteRegistration(BaseModel):
    """Fixed origin/destination line served by the driver's vehicle"""
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    price_per_seat: Decimal = Field(..., ge=0, decimal_places=2)
    distance: Optional[Decimal] = Field(None, ge=0, description="Distance in km")
    duration: Optional[int] = Field(None, ge=0, description="Duration in minutes")
    description: Optional[str] = None

class RouteOut(BaseModel):
    id: int
    vehicle_id: int
    origin: str
    destination: str
    price_per_seat: Decimal
    distance: Optional[Decimal] = None
    duration: Optional[int] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
