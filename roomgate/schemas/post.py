from enum import Enum
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

from .common import APIModel, Envelope, Page
from .room import Capabilities
from .user import UserSummary

class PostTargetKind(str, Enum):
    ROOM = "ROOM"

class CreatePostRequest(APIModel):
    content: str = Field(..., min_length=1, max_length=5000, description="Post content")

class PostPayload(BaseModel):
    """What the post collaborator needs to create a post on a target."""
    content: str
    target_kind: PostTargetKind
    target_id: UUID

class PostResponse(APIModel):
    id: UUID
    content: str
    author: Optional[UserSummary] = None
    target_kind: PostTargetKind
    target_id: UUID
    created_at: datetime

class PostMeta(APIModel):
    is_read: bool
    is_mine: bool
    can_delete: bool

class PostItem(APIModel):
    post: PostResponse
    meta: PostMeta

PostEnvelope = Envelope[PostItem, Capabilities]
PostPageEnvelope = Envelope[Page[PostItem], Capabilities]
