from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from .common import APIModel, Envelope, Page
from .room import Capabilities, MemberRole
from .user import UserSummary

class MemberMeta(APIModel):
    membership_id: UUID
    role: MemberRole
    is_self: bool
    is_cr: bool = Field(alias="isCR")
    is_admin: bool
    is_creator: bool

class MemberResponse(APIModel):
    user: UserSummary
    meta: MemberMeta

class JoinRequestResponse(APIModel):
    id: UUID
    user: UserSummary
    requested_at: datetime

class UpdateMemberRoleRequest(APIModel):
    is_admin: Optional[bool] = None
    is_cr: Optional[bool] = Field(default=None, alias="isCR")

class RequestDecisionResult(APIModel):
    membership_id: UUID
    user_id: UUID
    message: str

MemberPageEnvelope = Envelope[Page[MemberResponse], Capabilities]
JoinRequestPageEnvelope = Envelope[Page[JoinRequestResponse], Capabilities]
MemberEnvelope = Envelope[MemberResponse, Capabilities]
RequestDecisionEnvelope = Envelope[RequestDecisionResult, Capabilities]
