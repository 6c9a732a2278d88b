from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from src.auth.service import UserService
from src.auth.utils import decode_access_token
from src.config import settings
from src.database import get_db
from src.enums import Role
from src.exceptions import Forbidden, Unauthenticated

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    """Resolve the bearer token to a user"""
    if not token:
        raise Unauthenticated()

    payload = decode_access_token(token)
    if payload is None:
        raise Unauthenticated()

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise Unauthenticated()

    user = UserService.get_user_by_id(db, user_id=user_id)
    if user is None:
        raise Unauthenticated()

    return user

def require_role(*roles: Role):
    """Dependency factory restricting an endpoint to the given roles"""
    def checker(current_user = Depends(get_current_user)):
        if current_user.role not in roles:
            raise Forbidden("Not enough permissions")
        return current_user
    return checker

require_driver = require_role(Role.DRIVER)
# Drivers ride other vehicles as passengers too
require_rider = require_role(Role.PASSENGER, Role.DRIVER)
require_admin = require_role(Role.ADMIN)
