from datetime import timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from app_models import utcnow
from app_utils.exceptions import AuthenticationError
from config import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRATION_MINUTES

# Using pbkdf2_sha256 to avoid bcrypt's 72 byte limit and potential environment issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(subject, role, expires_minutes=JWT_EXPIRATION_MINUTES):
    expire = utcnow() + timedelta(minutes=expires_minutes)
    to_encode = {"sub": str(subject), "role": str(role.value if hasattr(role, "value") else role), "exp": expire}
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token):
    """Returns the token claims; AuthenticationError for anything invalid or expired."""
    if not token:
        raise AuthenticationError("Not authenticated")
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    if payload.get("sub") is None:
        raise AuthenticationError("Invalid or expired token")
    return payload
