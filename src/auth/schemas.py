from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional
from datetime import datetime, date

from src.enums import Role

class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr

class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = Role.PASSENGER
    phone: Optional[str] = None

class ProfileUpdate(BaseModel):
    """Fields left out are kept; blank strings clear the stored value"""
    name: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    date_of_birth: Optional[date] = None
    # Drivers only
    driver_id_number: Optional[str] = Field(None, max_length=64)
    driver_license_number: Optional[str] = Field(None, max_length=64)
    car_license_number: Optional[str] = Field(None, max_length=64)

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name is required')
        return v.strip()

    @validator(
        'phone', 'address', 'city', 'state',
        'driver_id_number', 'driver_license_number', 'car_license_number'
    )
    def blank_to_none(cls, v):
        if v is None:
            return None
        return v.strip() or None

    @validator('date_of_birth')
    def validate_date_of_birth(cls, v):
        if v is not None and v > date.today():
            raise ValueError('Date of birth cannot be in the future')
        return v

class UserInDB(UserBase):
    id: int
    role: Role
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    date_of_birth: Optional[date] = None
    driver_id_number: Optional[str] = None
    driver_license_number: Optional[str] = None
    car_license_number: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class User(UserInDB):
    pass

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class Token(BaseModel):
    access_token: str
    token_type: str

class AuthResponse(Token):
    user: User
