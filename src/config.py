from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./seatride.db"
    DATABASE_ECHO: bool = False

    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    PROJECT_NAME: str = "SeatRide Booking & Wallet Platform"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Booking engine
    CURRENCY: str = "EGP"
    MIN_VEHICLE_CAPACITY: int = 1
    MAX_VEHICLE_CAPACITY: int = 50
    SEAT_CODE_LENGTH: int = 14
    SEAT_CODE_MAX_ATTEMPTS: int = 10

    # Wallet
    MAX_TEST_CHARGE_AMOUNT: int = 10000
    TRANSACTION_HISTORY_LIMIT: int = 50

    # Optional override for the origin list accepted by the CORS middleware
    CORS_ORIGINS: Optional[str] = None

    @property
    def cors_origins(self) -> list:
        if not self.CORS_ORIGINS:
            return ["http://localhost:3000", "http://localhost:5173"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
