"""
Single source of truth for what a user may do in a room.

Every room action asks ``capabilities`` instead of comparing roles inline.
The function only reads its arguments, so it can be called as often as
needed while building a response.
"""
from typing import Optional
from uuid import UUID

from roomgate.core.exceptions import ForbiddenException
from roomgate.core.policy import RoomCreationPolicy
from roomgate.models.room import Room
from roomgate.models.room_membership import RoomMembership
from roomgate.schemas.room import Capabilities, MemberRole
from roomgate.schemas.user import UserType

# Global roles that may approve join requests and repair counters in any room
APPROVER_ROLES = frozenset({UserType.OWNER, UserType.ADMIN})


def is_frozen(room: Room, policy: RoomCreationPolicy) -> bool:
    """An archived room takes no new members or posts where archiving is enabled."""
    return policy.supports_archive and bool(room.is_archived)


def resolve_member_role(room: Room, membership: Optional[RoomMembership], user_id: UUID) -> Optional[MemberRole]:
    """CREATOR > ADMIN > CR > MEMBER; None without an accepted membership."""
    if room.creator_id == user_id:
        return MemberRole.CREATOR
    if membership is None or membership.is_pending:
        return None
    if membership.is_admin:
        return MemberRole.ADMIN
    if membership.is_cr:
        return MemberRole.CR
    return MemberRole.MEMBER


def capabilities(
    global_role: UserType,
    room: Room,
    membership: Optional[RoomMembership],
    user_id: UUID,
    policy: RoomCreationPolicy,
) -> Capabilities:
    """
    Derive the capability set of ``user_id`` in ``room``.

    ``membership`` must be that user's record in that room, or None. The
    creator counts as an accepted member even without a membership record.
    """
    is_creator = room.creator_id == user_id
    is_accepted = membership is not None and not membership.is_pending
    effective_member = is_creator or is_accepted
    posting_frozen = is_frozen(room, policy)

    can_moderate = is_creator or (is_accepted and bool(membership.is_admin))

    can_approve = (
        global_role in APPROVER_ROLES
        or is_creator
        or (global_role == UserType.TEACHER and is_accepted)
    )

    can_post = (
        effective_member
        and (bool(room.allow_member_posting) or global_role != UserType.STUDENT)
        and not posting_frozen
    )

    can_join = (
        membership is None
        and not is_creator
        and global_role not in policy.implicit_member_roles
    )

    visible = membership is not None or is_creator

    return Capabilities(
        global_role=global_role,
        role=resolve_member_role(room, membership, user_id),
        is_creator=is_creator,
        is_member=effective_member,
        is_pending=membership is not None and bool(membership.is_pending),
        can_join=can_join,
        can_read=effective_member or global_role in policy.implicit_member_roles,
        can_post=can_post,
        can_moderate=can_moderate,
        can_delete=is_creator,
        can_approve_requests=can_approve,
        can_manage_members=can_moderate,
        can_reconcile_counters=global_role in APPROVER_ROLES,
        visible_join_code=room.join_code if visible else None,
    )


def require(allowed: bool, detail: str) -> None:
    """
    Raises:
        ForbiddenException: If ``allowed`` is false
    """
    if not allowed:
        raise ForbiddenException(detail=detail)
