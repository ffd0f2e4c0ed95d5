from datetime import datetime, timedelta, timezone
import jwt
from ..core.config import settings
from ..core.exceptions import InvalidTokenException

def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """
    Create a JWT access token.

    Tokens are normally issued by the identity system; this is used by
    tooling and tests to mint tokens with the same claims.

    Args:
        data: Dictionary of claims (e.g., user_id, user_type)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expiry_hours)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt

def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded payload dictionary

    Raises:
        InvalidTokenException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenException(detail="Token has expired") from e
    except jwt.PyJWTError as e:
        raise InvalidTokenException(detail="Invalid authentication credentials") from e
