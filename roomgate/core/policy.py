from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Optional

from roomgate.core.config import Settings
from roomgate.schemas.user import UserType


@dataclass(frozen=True)
class RoomCreationPolicy:
    """
    Deployment-wide rules for who creates rooms and how members get in.

    One instance is selected at startup from settings and injected into the
    room service, so both deployment flavours run through the same code.
    """
    name: str
    allowed_creator_roles: FrozenSet[UserType]
    auto_enroll_creator: bool
    supports_archive: bool
    supports_hide: bool
    require_join_approval: bool
    # 1 = a user may hold a single membership (pending or accepted) at a time
    max_active_rooms_per_user: Optional[int] = None
    implicit_member_roles: FrozenSet[UserType] = frozenset({UserType.ADMIN})

    def __post_init__(self):
        if self.max_active_rooms_per_user not in (1, None):
            raise ValueError("max_active_rooms_per_user must be 1 or None")

    @property
    def single_room(self) -> bool:
        return self.max_active_rooms_per_user == 1

    def can_create_rooms(self, user_type: UserType) -> bool:
        return user_type in self.allowed_creator_roles


TEACHER_ROOMS = RoomCreationPolicy(
    name="teacher_rooms",
    allowed_creator_roles=frozenset({UserType.TEACHER}),
    auto_enroll_creator=True,
    supports_archive=True,
    supports_hide=True,
    require_join_approval=False,
    max_active_rooms_per_user=None,
)

OWNER_BRANCHES = RoomCreationPolicy(
    name="owner_branches",
    allowed_creator_roles=frozenset({UserType.OWNER}),
    auto_enroll_creator=False,
    supports_archive=False,
    supports_hide=False,
    require_join_approval=True,
    max_active_rooms_per_user=1,
    implicit_member_roles=frozenset({UserType.OWNER, UserType.ADMIN}),
)

PRESETS: Dict[str, RoomCreationPolicy] = {
    TEACHER_ROOMS.name: TEACHER_ROOMS,
    OWNER_BRANCHES.name: OWNER_BRANCHES,
}


def policy_from_settings(settings: Settings) -> RoomCreationPolicy:
    """Build the active policy from its preset plus any per-field overrides."""
    policy = PRESETS[settings.room_policy]
    overrides = {}
    if settings.room_allowed_creator_roles is not None:
        overrides["allowed_creator_roles"] = frozenset(settings.room_allowed_creator_roles)
    if settings.room_auto_enroll_creator is not None:
        overrides["auto_enroll_creator"] = settings.room_auto_enroll_creator
    if settings.room_supports_archive is not None:
        overrides["supports_archive"] = settings.room_supports_archive
    if settings.room_supports_hide is not None:
        overrides["supports_hide"] = settings.room_supports_hide
    if settings.room_require_join_approval is not None:
        overrides["require_join_approval"] = settings.room_require_join_approval
    if settings.room_single_membership is not None:
        overrides["max_active_rooms_per_user"] = 1 if settings.room_single_membership else None

    if overrides:
        return replace(policy, **overrides)
    return policy
