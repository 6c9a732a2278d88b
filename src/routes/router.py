from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.auth.dependencies import require_driver
from src.database import get_db
from src.exceptions import NotFound, handle
from src.routes.schemas import RouteRegistration, RouteOut
from src.routes.service import RouteService

router = APIRouter()

@router.post("/", response_model=RouteOut, status_code=status.HTTP_201_CREATED)
def register_route(
    registration: RouteRegistration,
    current_user = Depends(require_driver),
    db: Session = Depends(get_db)
):
    """Register the route served by the current driver's vehicle"""
    try:
        return RouteService.register_route(db, current_user.id, registration)
    except Exception as e:
        handle(e)

@router.get("/me", response_model=RouteOut)
def get_my_route(current_user = Depends(require_driver), db: Session = Depends(get_db)):
    route = RouteService.get_route_by_owner(db, current_user.id)
    if not route:
        raise NotFound("You need to register a route first")
    return route
