from typing import Optional

from fastapi import Depends, Query
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app_models import User
from app_utils.exceptions import AuthenticationError, ForbiddenError
from app_utils.security import decode_access_token
from database import get_db
import crud

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _user_from_token(db: Session, token: Optional[str]) -> User:
    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid or expired token")

    user = crud.get_user(db, user_id)
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    return _user_from_token(db, token)


def get_stream_user(
    token: Optional[str] = Depends(oauth2_scheme),
    query_token: Optional[str] = Query(None, alias="token"),
    db: Session = Depends(get_db),
) -> User:
    """EventSource clients cannot set headers, so the token may come as ?token=..."""
    return _user_from_token(db, token or query_token)


def require_roles(*roles):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise ForbiddenError("You do not have permission to perform this action")
        return current_user
    return checker
