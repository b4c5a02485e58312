import logging

from sqlalchemy.orm import Session

from app_models import User
from app_utils.constants import UserRole, parse_enum
from app_utils.exceptions import AuthenticationError, ForbiddenError, InvalidInputError, NotFoundError
from app_utils.security import get_password_hash, verify_password, create_access_token
from config import JWT_EXPIRATION_MINUTES
from schemas import UserCreate, UserResponse, TokenResponse, UpdateProfileRequest, ChangePasswordRequest
import crud

logger = logging.getLogger(__name__)


def register(db: Session, data: UserCreate) -> User:
    if crud.get_user_by_email(db, data.email):
        raise InvalidInputError("Email is already in use")

    role = UserRole.CITIZEN if not data.role else parse_enum(UserRole, data.role, "role")
    if role != UserRole.CITIZEN:
        # staff and admin accounts are provisioned with scripts/create_admin.py
        raise ForbiddenError(f"Self-registration as {role.value} is not allowed")
    user = crud.create_user(
        db,
        name=data.name,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        phone=data.phone,
        role=role,
    )
    logger.info(f"Registered user {user.id} with role {user.role.value}")
    return user


def authenticate(db: Session, email: str, password: str) -> TokenResponse:
    user = crud.get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(user.id, user.role)
    refresh_token = create_access_token(user.id, user.role, expires_minutes=JWT_EXPIRATION_MINUTES * 7)
    return TokenResponse(
        token=token,
        expires_in=JWT_EXPIRATION_MINUTES * 60,
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
    )


def get_profile(db: Session, user_id: int) -> User:
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError(f"User not found with id: {user_id}")
    return user


def update_profile(db: Session, user: User, data: UpdateProfileRequest) -> User:
    user.name = data.name
    if data.phone is not None:
        user.phone = data.phone
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, data: ChangePasswordRequest):
    if not verify_password(data.current_password, user.hashed_password):
        raise InvalidInputError("Current password is incorrect")
    user.hashed_password = get_password_hash(data.new_password)
    db.commit()
    logger.info(f"Password changed for user {user.id}")
