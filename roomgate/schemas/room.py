from pydantic import Field
from uuid import UUID
from datetime import datetime
from enum import Enum
from typing import Optional

from .common import APIModel, Envelope, Page
from .user import UserSummary, UserType

class RoomType(str, Enum):
    GENERAL = "GENERAL"
    CLASS = "CLASS"
    DEPARTMENT = "DEPARTMENT"
    BATCH = "BATCH"
    CLUB = "CLUB"

class MemberRole(str, Enum):
    CREATOR = "CREATOR"
    ADMIN = "ADMIN"
    CR = "CR"
    MEMBER = "MEMBER"

class RoomSettings(APIModel):
    allow_member_posting: bool = True
    allow_comments: bool = True

class RoomSettingsPatch(APIModel):
    allow_member_posting: Optional[bool] = None
    allow_comments: Optional[bool] = None

class CreateRoomRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=100, description="Room name")
    description: str = Field(default="", max_length=2000)
    cover_image: Optional[str] = Field(default=None, description="Cover image URL; a default is used when omitted")
    room_type: RoomType
    settings: RoomSettings = Field(default_factory=RoomSettings)

class UpdateRoomRequest(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    room_type: Optional[RoomType] = None
    settings: Optional[RoomSettingsPatch] = None

class JoinRoomRequest(APIModel):
    join_code: str = Field(..., min_length=1, max_length=32)

class Capabilities(APIModel):
    """
    Effective permissions of one user in one room.

    Computed by ``roomgate.services.authorization.capabilities`` and returned
    as ``meta`` so clients never re-derive roles.
    """
    global_role: UserType
    role: Optional[MemberRole] = None
    is_creator: bool = False
    is_member: bool = False
    is_pending: bool = False
    can_join: bool = False
    can_read: bool = False
    can_post: bool = False
    can_moderate: bool = False
    can_delete: bool = False
    can_approve_requests: bool = False
    can_manage_members: bool = False
    can_reconcile_counters: bool = False
    visible_join_code: Optional[str] = None

class ListingMeta(APIModel):
    global_role: UserType
    can_create_rooms: bool

class RoomResponse(APIModel):
    id: UUID
    name: str
    description: str
    cover_image: str
    room_type: RoomType
    join_code: Optional[str] = None
    creator_id: UUID
    creator: Optional[UserSummary] = None
    is_archived: bool
    members_count: int
    posts_count: int
    settings: RoomSettings
    created_at: datetime

    @classmethod
    def from_room(cls, room, capabilities: Capabilities, creator=None) -> "RoomResponse":
        """Build the response, exposing the join code only where the caller may see it."""
        return cls(
            id=room.id,
            name=room.name,
            description=room.description or "",
            cover_image=room.cover_image,
            room_type=room.room_type,
            join_code=capabilities.visible_join_code,
            creator_id=room.creator_id,
            creator=UserSummary.model_validate(creator) if creator is not None else None,
            is_archived=bool(room.is_archived),
            members_count=room.members_count,
            posts_count=room.posts_count,
            settings=RoomSettings(**room.settings),
            created_at=room.created_at,
        )

class RoomListItem(APIModel):
    room: RoomResponse
    is_cr: bool = Field(default=False, alias="isCR")
    is_hidden: bool = False
    meta: Capabilities

class JoinResult(APIModel):
    room_id: UUID
    room_name: str
    membership_id: UUID
    is_pending: bool
    message: str

class ArchiveResult(APIModel):
    room_id: UUID
    is_archived: bool

class HideResult(APIModel):
    room_id: UUID
    is_hidden: bool

class DeleteResult(APIModel):
    room_id: UUID
    message: str = "Room deleted"

class LeaveResult(APIModel):
    room_id: UUID
    message: str

class CounterDrift(APIModel):
    room_id: UUID
    members_count_before: int
    members_count_after: int
    posts_count_before: int
    posts_count_after: int

    @property
    def drifted(self) -> bool:
        return (
            self.members_count_before != self.members_count_after
            or self.posts_count_before != self.posts_count_after
        )

RoomEnvelope = Envelope[RoomResponse, Capabilities]
RoomPageEnvelope = Envelope[Page[RoomListItem], ListingMeta]
JoinEnvelope = Envelope[JoinResult, Capabilities]
ArchiveEnvelope = Envelope[ArchiveResult, Capabilities]
HideEnvelope = Envelope[HideResult, Capabilities]
DeleteEnvelope = Envelope[DeleteResult, Capabilities]
LeaveEnvelope = Envelope[LeaveResult, Capabilities]
