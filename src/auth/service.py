import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from src.auth.schemas import ProfileUpdate, UserCreate
from src.auth.utils import get_password_hash, verify_password
from src.database import transaction
from src.exceptions import Conflict, NotFound, ValidationError
from src.enums import Role
from src.loggers import log_event
from src.models import User

logger = logging.getLogger(__name__)

DRIVER_FIELDS = ("driver_id_number", "driver_license_number", "car_license_number")

class UserService:
    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        return db.query(User).filter(User.email == email.lower()).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def create_user(db: Session, user: UserCreate) -> User:
        """Create a new user; wallets are created lazily on first money movement"""
        if user.role == Role.ADMIN:
            raise ValidationError("Admin accounts cannot be self-registered")
        if UserService.get_user_by_email(db, user.email):
            raise Conflict("Account already exists")

        db_user = User(
            name=user.name.strip(),
            email=user.email.lower(),
            password=get_password_hash(user.password),
            role=user.role,
            phone=user.phone,
        )

        try:
            db.add(db_user)
            db.commit()
            db.refresh(db_user)
        except IntegrityError:
            db.rollback()
            raise Conflict("Account already exists")

        log_event(logger, "user.registered", user_id=db_user.id, role=db_user.role.value)
        return db_user

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Authenticate user with email and password"""
        user = UserService.get_user_by_email(db, email)
        if not user:
            return None
        if not verify_password(password, user.password):
            return None
        return user

    @staticmethod
    def update_profile(db: Session, user_id: int, fields: ProfileUpdate) -> User:
        """Update the caller's profile; only drivers carry ID and license numbers"""
        changes = fields.model_dump(exclude_unset=True)
        driver_fields = [f for f in DRIVER_FIELDS if changes.get(f) is not None]

        with transaction(db):
            user = db.query(User).filter(User.id == user_id).with_for_update().first()
            if not user:
                raise NotFound("User not found")
            if driver_fields and user.role != Role.DRIVER:
                raise ValidationError("Only drivers can set ID and license numbers")

            for field, value in changes.items():
                setattr(user, field, value)
            db.flush()

        db.refresh(user)
        log_event(logger, "user.profile_updated", user_id=user.id, fields=",".join(sorted(changes)))
        return user
