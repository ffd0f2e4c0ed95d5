import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import (
    AlreadyMemberException,
    InvalidStateException,
    MembershipNotFoundException,
)
from ..core.policy import RoomCreationPolicy
from ..models.room import Room
from ..models.room_membership import RoomMembership
from ..utils.pagination import fetch_page

logger = logging.getLogger(__name__)


class MembershipLedger:
    """
    Owns (room, user) membership records, pending requests included.

    At most one record exists per (room, user). Under a single-room policy
    the record also fills ``exclusive_user_id`` so the store rejects a second
    membership for the same user in any room.
    """

    def __init__(self, db: AsyncSession, policy: RoomCreationPolicy):
        self.db = db
        self.policy = policy

    async def find(self, room_id: UUID, user_id: UUID) -> Optional[RoomMembership]:
        result = await self.db.execute(
            select(RoomMembership)
            .filter(
                and_(
                    RoomMembership.room_id == room_id,
                    RoomMembership.user_id == user_id,
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_many(self, user_id: UUID, room_ids: Iterable[UUID]) -> Dict[UUID, RoomMembership]:
        ids = set(room_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(RoomMembership).filter(
                RoomMembership.user_id == user_id,
                RoomMembership.room_id.in_(ids),
            )
        )
        return {membership.room_id: membership for membership in result.scalars().all()}

    async def find_for_user(self, user_id: UUID) -> Optional[RoomMembership]:
        """Most recent membership of the user in any room."""
        result = await self.db.execute(
            select(RoomMembership)
            .filter(RoomMembership.user_id == user_id)
            .order_by(RoomMembership.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get(self, membership_id: UUID) -> RoomMembership:
        result = await self.db.execute(
            select(RoomMembership)
            .filter(RoomMembership.id == membership_id)
            .execution_options(populate_existing=True)
        )
        membership = result.scalar_one_or_none()
        if membership is None:
            raise MembershipNotFoundException()
        return membership

    async def create_pending(self, room_id: UUID, user_id: UUID) -> RoomMembership:
        return await self._create(room_id, user_id, is_pending=True)

    async def create_accepted(self, room_id: UUID, user_id: UUID) -> RoomMembership:
        return await self._create(room_id, user_id, is_pending=False)

    async def _create(self, room_id: UUID, user_id: UUID, is_pending: bool) -> RoomMembership:
        await self._ensure_unique(room_id, user_id)

        membership = RoomMembership(
            room_id=room_id,
            user_id=user_id,
            exclusive_user_id=user_id if self.policy.single_room else None,
            is_pending=is_pending,
            is_cr=False,
            is_admin=False,
            is_hidden=False,
        )
        self.db.add(membership)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost the race against a concurrent insert; the store has the final word
            await self.db.rollback()
            logger.info(f"Membership insert for user {user_id} in room {room_id} hit a uniqueness constraint")
            await self._ensure_unique(room_id, user_id)
            raise AlreadyMemberException() from e
        return membership

    async def _ensure_unique(self, room_id: UUID, user_id: UUID) -> None:
        """
        Raises:
            AlreadyMemberException: If the new membership would break a uniqueness rule
        """
        existing = await self.find(room_id, user_id)
        if existing is not None:
            if existing.is_pending:
                raise AlreadyMemberException(detail="You have already requested to join this room")
            raise AlreadyMemberException(detail="Already a member of this room")

        if not self.policy.single_room:
            return

        other = await self.find_for_user(user_id)
        if other is not None:
            result = await self.db.execute(select(Room.name).filter(Room.id == other.room_id))
            room_name = result.scalar_one_or_none()
            state = "requesting to join" if other.is_pending else "a member of"
            raise AlreadyMemberException(
                detail=f'You are already {state} "{room_name}". Please leave that room first.'
            )

    async def accept(self, membership: RoomMembership) -> RoomMembership:
        """
        Raises:
            InvalidStateException: If the membership is not pending
        """
        if not membership.is_pending:
            raise InvalidStateException(detail="This request has already been accepted")
        membership.is_pending = False
        await self.db.flush()
        return membership

    async def reject(self, membership: RoomMembership) -> None:
        await self.delete(membership)

    async def delete(self, membership: RoomMembership) -> None:
        await self.db.delete(membership)
        await self.db.flush()

    async def set_flags(
        self,
        membership: RoomMembership,
        is_admin: Optional[bool] = None,
        is_cr: Optional[bool] = None,
        is_hidden: Optional[bool] = None,
    ) -> RoomMembership:
        if is_admin is not None:
            membership.is_admin = is_admin
        if is_cr is not None:
            membership.is_cr = is_cr
        if is_hidden is not None:
            membership.is_hidden = is_hidden
        await self.db.flush()
        return membership

    async def list_by_room(
        self,
        room_id: UUID,
        page: int,
        limit: int,
        pending: Optional[bool] = None,
    ) -> Tuple[List[RoomMembership], int]:
        """
        Memberships of a room, newest first, with users loaded.

        ``pending`` selects pending requests (True), accepted members (False)
        or both (None).
        """
        query = select(RoomMembership).filter(RoomMembership.room_id == room_id)
        if pending is not None:
            query = query.filter(RoomMembership.is_pending.is_(pending))
        query = query.order_by(RoomMembership.created_at.desc(), RoomMembership.id.desc())
        return await fetch_page(self.db, query, page, limit, options=[selectinload(RoomMembership.user)])

    async def list_by_user(
        self,
        user_id: UUID,
        page: int,
        limit: int,
        hidden: Optional[bool] = None,
        archived: Optional[bool] = None,
        accepted_only: bool = True,
    ) -> Tuple[List[RoomMembership], int]:
        """
        Memberships of a user in rooms that are not deleted, newest first,
        with the room and its creator loaded.
        """
        query = (
            select(RoomMembership)
            .join(Room, Room.id == RoomMembership.room_id)
            .filter(
                RoomMembership.user_id == user_id,
                Room.is_deleted.is_(False),
            )
        )
        if accepted_only:
            query = query.filter(RoomMembership.is_pending.is_(False))
        if hidden is not None:
            query = query.filter(RoomMembership.is_hidden.is_(hidden))
        if archived is not None:
            query = query.filter(Room.is_archived.is_(archived))
        query = query.order_by(RoomMembership.created_at.desc(), RoomMembership.id.desc())
        query = query.execution_options(populate_existing=True)
        return await fetch_page(
            self.db,
            query,
            page,
            limit,
            options=[selectinload(RoomMembership.room).selectinload(Room.creator)],
        )

    async def count_accepted(self, room_id: UUID) -> int:
        total = await self.db.scalar(
            select(func.count(RoomMembership.id)).filter(
                RoomMembership.room_id == room_id,
                RoomMembership.is_pending.is_(False),
            )
        )
        return total or 0
