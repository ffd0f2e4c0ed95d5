import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import RoomNotFoundException, ValidationException
from ..models.room import Room
from ..schemas.room import CounterDrift, RoomSettings, RoomType, UpdateRoomRequest
from ..utils.pagination import fetch_page

logger = logging.getLogger(__name__)


class RoomRegistry:
    """
    Owns Room rows and their status fields.

    Pure state access: callers are responsible for authorization.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        creator_id: UUID,
        *,
        name: str,
        description: str,
        cover_image: str,
        room_type: RoomType,
        settings: RoomSettings,
        join_code: str,
        members_count: int = 0,
    ) -> Room:
        """
        Insert a room and flush it.

        Raises:
            sqlalchemy.exc.IntegrityError: If the join code was taken concurrently
        """
        room = Room(
            name=name,
            description=description,
            cover_image=cover_image,
            room_type=room_type,
            join_code=join_code,
            creator_id=creator_id,
            is_archived=False,
            is_deleted=False,
            members_count=members_count,
            posts_count=0,
            allow_member_posting=settings.allow_member_posting,
            allow_comments=settings.allow_comments,
        )
        self.db.add(room)
        await self.db.flush()
        return room

    async def get_including_deleted(self, room_id: UUID) -> Optional[Room]:
        """Direct id lookup that also sees soft-deleted rooms. Only the deletion path uses it."""
        result = await self.db.execute(
            select(Room)
            .filter(Room.id == room_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, room_id: UUID) -> Room:
        """
        Raises:
            RoomNotFoundException: If the room is absent or soft-deleted
        """
        room = await self.get_including_deleted(room_id)
        if room is None or room.is_deleted:
            raise RoomNotFoundException()
        return room

    async def get_with_creator(self, room_id: UUID) -> Room:
        result = await self.db.execute(
            select(Room)
            .filter(Room.id == room_id, Room.is_deleted.is_(False))
            .options(selectinload(Room.creator))
            .execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if room is None:
            raise RoomNotFoundException()
        return room

    async def get_by_join_code(self, join_code: str) -> Optional[Room]:
        result = await self.db.execute(
            select(Room)
            .filter(Room.join_code == join_code)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def join_code_exists(self, join_code: str) -> bool:
        result = await self.db.execute(
            select(Room.id).filter(Room.join_code == join_code).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def update_fields(self, room: Room, patch: UpdateRoomRequest) -> Room:
        """Partial update; settings merge shallowly over the stored ones."""
        if patch.name is not None:
            name = patch.name.strip()
            if not name:
                raise ValidationException(detail="Room name cannot be blank")
            room.name = name
        if patch.description is not None:
            room.description = patch.description
        if patch.room_type is not None:
            room.room_type = patch.room_type
        if patch.settings is not None:
            for key, value in patch.settings.model_dump(exclude_none=True).items():
                setattr(room, key, value)
        await self.db.flush()
        return room

    async def set_archived(self, room: Room, value: bool) -> Room:
        room.is_archived = value
        await self.db.flush()
        return room

    async def soft_delete(self, room: Room) -> Room:
        room.is_deleted = True
        await self.db.flush()
        return room

    async def set_cover_image(self, room: Room, url: str) -> Room:
        room.cover_image = url
        await self.db.flush()
        return room

    async def increment_counters(self, room_id: UUID, members: int = 0, posts: int = 0) -> None:
        """Adjust counters in a single UPDATE using SQL arithmetic, never read-modify-write."""
        values = {}
        if members:
            values["members_count"] = Room.members_count + members
        if posts:
            values["posts_count"] = Room.posts_count + posts
        if not values:
            return
        await self.db.execute(
            update(Room)
            .where(Room.id == room_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def list_rooms(self, page: int, limit: int) -> Tuple[List[Room], int]:
        """Non-deleted rooms, newest first."""
        query = (
            select(Room)
            .filter(Room.is_deleted.is_(False))
            .order_by(Room.created_at.desc(), Room.id.desc())
            .execution_options(populate_existing=True)
        )
        return await fetch_page(self.db, query, page, limit, options=[selectinload(Room.creator)])

    async def list_room_ids(self, after: Optional[UUID], batch_size: int) -> List[UUID]:
        """Keyset-paged ids of non-deleted rooms, for maintenance jobs."""
        query = select(Room.id).filter(Room.is_deleted.is_(False)).order_by(Room.id).limit(batch_size)
        if after is not None:
            query = query.filter(Room.id > after)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def reconcile_counters(self, room: Room, members_count: int, posts_count: int) -> CounterDrift:
        """Overwrite stored counters with recounted values and report the difference."""
        drift = CounterDrift(
            room_id=room.id,
            members_count_before=room.members_count,
            members_count_after=members_count,
            posts_count_before=room.posts_count,
            posts_count_after=posts_count,
        )
        if drift.drifted:
            logger.warning(
                f"Counter drift on room {room.id}: members {drift.members_count_before}->{members_count}, "
                f"posts {drift.posts_count_before}->{posts_count}"
            )
            room.members_count = members_count
            room.posts_count = posts_count
            await self.db.flush()
        return drift
