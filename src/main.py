import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from src.config import settings
from src.database import init_db
from src.exceptions import APIException, handle
from src.loggers import setup_logging
from src.auth import router as auth_router
from src.wallets import router as wallets_router
from src.vehicles import router as vehicles_router
from src.routes import router as routes_router
from src.rides import router as rides_router
from src.bookings import router as bookings_router

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")
    yield

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Ride booking and wallet platform API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(IntegrityError)
@app.exception_handler(StaleDataError)
def store_conflict_handler(request: Request, exc: Exception):
    """Constraint violations and lost optimistic-lock races that escaped a service"""
    try:
        handle(exc)
    except APIException as e:
        return JSONResponse(status_code=e.status_code, content={"detail": e.detail}, headers=e.headers)

# Include routers
app.include_router(
    auth_router.router,
    prefix=f"{settings.API_V1_STR}/auth",
    tags=["Authentication"]
)

app.include_router(
    wallets_router,
    prefix=f"{settings.API_V1_STR}/wallet",
    tags=["Wallet"]
)

app.include_router(
    vehicles_router,
    prefix=f"{settings.API_V1_STR}/vehicles",
    tags=["Vehicles & Seats"]
)

app.include_router(
    routes_router,
    prefix=f"{settings.API_V1_STR}/routes",
    tags=["Routes"]
)

app.include_router(
    rides_router,
    prefix=f"{settings.API_V1_STR}/rides",
    tags=["Rides"]
)

app.include_router(
    bookings_router,
    prefix=f"{settings.API_V1_STR}/bookings",
    tags=["Bookings"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": settings.PROJECT_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
