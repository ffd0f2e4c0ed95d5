from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from .common import APIModel

class UserType(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"

class CurrentUser(BaseModel):
    """Authenticated caller as supplied by the auth context."""
    id: UUID
    # Cached global role from the token, when the identity system includes it
    user_type: Optional[UserType] = None

class UserSummary(APIModel):
    id: UUID
    username: str
    full_name: str
    avatar: Optional[str] = None
