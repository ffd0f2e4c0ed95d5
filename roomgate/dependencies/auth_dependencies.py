from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from roomgate.core.exceptions import InvalidTokenException
from roomgate.core.security import verify_token
from roomgate.schemas.user import CurrentUser, UserType

security = HTTPBearer(auto_error=False)


def _user_from_token(token: str) -> CurrentUser:
    """
    Build the caller from a verified token.

    Users live in the identity system; the token carries ``user_id`` and,
    optionally, the caller's global ``user_type``.
    """
    if not token:
        raise InvalidTokenException(detail="Token not provided")

    payload = verify_token(token)
    user_id = payload.get("user_id")
    if user_id is None:
        raise InvalidTokenException()

    try:
        user_type = UserType(payload["user_type"]) if payload.get("user_type") else None
        return CurrentUser(id=UUID(str(user_id)), user_type=user_type)
    except ValueError as e:
        raise InvalidTokenException() from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    Dependency for HTTP routes to get the current user from a Bearer token.
    """
    if credentials is None:
        raise InvalidTokenException(detail="Token not provided")
    return _user_from_token(credentials.credentials)
