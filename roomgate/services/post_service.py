import logging
from typing import Iterable, List, Set, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import PostNotFoundException
from ..models.post import Post, PostRead
from ..schemas.post import PostPayload, PostTargetKind
from ..utils.pagination import fetch_page

logger = logging.getLogger(__name__)


class PostService:
    """
    Minimal content collaborator.

    Rooms only hand it a (target_kind, target_id) pair; counters on the
    target are the caller's business.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_post(self, payload: PostPayload, author_id: UUID) -> Post:
        post = Post(
            content=payload.content,
            target_kind=payload.target_kind,
            target_id=payload.target_id,
            author_id=author_id,
            is_deleted=False,
        )
        self.db.add(post)
        await self.db.flush()
        await self.db.refresh(post, attribute_names=["author"])
        return post

    async def get_post(self, post_id: UUID) -> Post:
        result = await self.db.execute(
            select(Post).filter(Post.id == post_id, Post.is_deleted.is_(False))
        )
        post = result.scalar_one_or_none()
        if post is None:
            raise PostNotFoundException()
        return post

    async def list_posts(
        self,
        target_kind: PostTargetKind,
        target_id: UUID,
        page: int,
        limit: int,
    ) -> Tuple[List[Post], int]:
        """Non-deleted posts on a target, newest first, with authors loaded."""
        query = (
            select(Post)
            .filter(
                Post.target_kind == target_kind,
                Post.target_id == target_id,
                Post.is_deleted.is_(False),
            )
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        return await fetch_page(self.db, query, page, limit, options=[selectinload(Post.author)])

    async def count_posts(self, target_kind: PostTargetKind, target_id: UUID) -> int:
        total = await self.db.scalar(
            select(func.count(Post.id)).filter(
                Post.target_kind == target_kind,
                Post.target_id == target_id,
                Post.is_deleted.is_(False),
            )
        )
        return total or 0

    async def read_post_ids(self, user_id: UUID, post_ids: Iterable[UUID]) -> Set[UUID]:
        ids = set(post_ids)
        if not ids:
            return set()
        result = await self.db.execute(
            select(PostRead.post_id).filter(
                PostRead.user_id == user_id,
                PostRead.post_id.in_(ids),
            )
        )
        return set(result.scalars().all())

    async def mark_read(self, post_id: UUID, user_id: UUID) -> None:
        """
        Record that the user has read the post. Idempotent.

        A concurrent read of the same post wins the unique constraint; the
        session is rolled back, so call this with no other pending writes.
        """
        already = await self.read_post_ids(user_id, [post_id])
        if already:
            return
        self.db.add(PostRead(post_id=post_id, user_id=user_id))
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            logger.debug(f"Read of post {post_id} by {user_id} already recorded")
