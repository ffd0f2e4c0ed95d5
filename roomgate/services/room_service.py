import logging
from typing import Callable, List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import (
    AlreadyMemberException,
    ArchivedRoomException,
    ForbiddenException,
    InvalidJoinCodeException,
    InvalidStateException,
    JoinCodeConflictException,
    MembershipNotFoundException,
    PostNotFoundException,
    RoomNotFoundException,
    ValidationException,
)
from ..core.policy import RoomCreationPolicy
from ..models.room import Room
from ..models.room_membership import RoomMembership
from ..schemas.common import Page
from ..schemas.membership import (
    JoinRequestPageEnvelope,
    JoinRequestResponse,
    MemberEnvelope,
    MemberMeta,
    MemberPageEnvelope,
    MemberResponse,
    RequestDecisionEnvelope,
    RequestDecisionResult,
    UpdateMemberRoleRequest,
)
from ..schemas.post import (
    CreatePostRequest,
    PostEnvelope,
    PostItem,
    PostMeta,
    PostPageEnvelope,
    PostPayload,
    PostResponse,
    PostTargetKind,
)
from ..schemas.room import (
    ArchiveEnvelope,
    ArchiveResult,
    Capabilities,
    CounterDrift,
    CreateRoomRequest,
    DeleteEnvelope,
    DeleteResult,
    HideEnvelope,
    HideResult,
    JoinEnvelope,
    JoinResult,
    LeaveEnvelope,
    LeaveResult,
    ListingMeta,
    MemberRole,
    RoomEnvelope,
    RoomListItem,
    RoomPageEnvelope,
    RoomResponse,
    UpdateRoomRequest,
)
from ..schemas.user import CurrentUser, UserSummary, UserType
from ..utils.pagination import validate_page
from .asset_storage import AssetStorage
from .authorization import capabilities, is_frozen, require, resolve_member_role
from .identity_service import IdentityService
from .join_codes import assign_unique_join_code, generate_join_code, normalize_join_code
from .membership_ledger import MembershipLedger
from .post_service import PostService
from .room_registry import RoomRegistry

logger = logging.getLogger(__name__)


class RoomContext(NamedTuple):
    room: Room
    membership: Optional[RoomMembership]
    user_type: UserType
    caps: Capabilities


def _is_join_code_conflict(error: IntegrityError) -> bool:
    return "join_code" in str(error.orig)


class RoomService:
    """
    Coordinates the registry, the ledger and the authorization evaluator.

    Each public method is one caller action: it authorizes through
    ``capabilities``, mutates state inside the session and commits once.
    Any exception leaves nothing committed.
    """

    def __init__(
        self,
        db: AsyncSession,
        policy: RoomCreationPolicy,
        identity_service: IdentityService,
        post_service: PostService,
        asset_storage: AssetStorage,
        default_cover_image: str = settings.default_cover_image_url,
        join_code_insert_attempts: int = settings.join_code_insert_attempts,
        max_page_size: int = settings.max_page_size,
        join_code_generator: Callable[[], str] = generate_join_code,
    ):
        self.db = db
        self.policy = policy
        self.identity = identity_service
        self.posts = post_service
        self.asset_storage = asset_storage
        self.registry = RoomRegistry(db)
        self.ledger = MembershipLedger(db, policy)
        self.default_cover_image = default_cover_image
        self.join_code_insert_attempts = join_code_insert_attempts
        self.max_page_size = max_page_size
        self.join_code_generator = join_code_generator

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _user_type(self, user: CurrentUser) -> UserType:
        return await self.identity.get_user_type(user.id, user.user_type)

    def _capabilities(self, user_type: UserType, room: Room, membership: Optional[RoomMembership], user: CurrentUser) -> Capabilities:
        return capabilities(user_type, room, membership, user.id, self.policy)

    async def _context(self, room_id: UUID, user: CurrentUser) -> RoomContext:
        """Load a live room with the caller's membership and capabilities."""
        room = await self.registry.get(room_id)
        membership = await self.ledger.find(room.id, user.id)
        user_type = await self._user_type(user)
        return RoomContext(room, membership, user_type, self._capabilities(user_type, room, membership, user))

    async def _refreshed_caps(self, ctx: RoomContext, user: CurrentUser) -> Capabilities:
        await self.db.refresh(ctx.room)
        membership = await self.ledger.find(ctx.room.id, user.id)
        return self._capabilities(ctx.user_type, ctx.room, membership, user)

    def _listing_meta(self, user_type: UserType) -> ListingMeta:
        return ListingMeta(global_role=user_type, can_create_rooms=self.policy.can_create_rooms(user_type))

    # ------------------------------------------------------------------
    # room lifecycle
    # ------------------------------------------------------------------

    async def create_room(self, user: CurrentUser, request: CreateRoomRequest) -> RoomEnvelope:
        """
        Create a new room with a unique join code.

        Args:
            user: The caller
            request: Room creation request

        Returns:
            The created room and the creator's capabilities

        Raises:
            ForbiddenException: If the caller's global role may not create rooms
            ValidationException: If name, cover image or room type is missing
            JoinCodeConflictException: If every join code tried lost an insert race
        """
        user_type = await self._user_type(user)
        if not self.policy.can_create_rooms(user_type):
            allowed = ", ".join(sorted(role.value for role in self.policy.allowed_creator_roles))
            raise ForbiddenException(detail=f"Only {allowed} users can create rooms")

        name = (request.name or "").strip()
        if not name:
            raise ValidationException(detail="Room name is required")
        if request.room_type is None:
            raise ValidationException(detail="Room type is required")
        cover_image = request.cover_image or self.default_cover_image
        if not cover_image:
            raise ValidationException(detail="Cover image is required")

        room = None
        for attempt in range(1, self.join_code_insert_attempts + 1):
            join_code = await assign_unique_join_code(self.registry, self.join_code_generator)
            try:
                room = await self.registry.create(
                    user.id,
                    name=name,
                    description=request.description or "",
                    cover_image=cover_image,
                    room_type=request.room_type,
                    settings=request.settings,
                    join_code=join_code,
                    members_count=1 if self.policy.auto_enroll_creator else 0,
                )
                break
            except IntegrityError as e:
                await self.db.rollback()
                if not _is_join_code_conflict(e):
                    raise
                logger.warning(
                    f"Join code {join_code} was taken concurrently "
                    f"(attempt {attempt}/{self.join_code_insert_attempts})"
                )
        if room is None:
            raise JoinCodeConflictException()

        membership = None
        if self.policy.auto_enroll_creator:
            membership = await self.ledger.create_accepted(room.id, user.id)

        await self.db.commit()
        logger.info(f"User {user.id} created room {room.id} with join code {room.join_code}")

        caps = self._capabilities(user_type, room, membership, user)
        return RoomEnvelope(data=RoomResponse.from_room(room, caps), meta=caps)

    async def get_room(self, room_id: UUID) -> Room:
        """Direct registry read. Soft-deleted rooms raise RoomNotFoundException."""
        return await self.registry.get(room_id)

    async def get_room_details(self, room_id: UUID, user: CurrentUser) -> RoomEnvelope:
        room = await self.registry.get_with_creator(room_id)
        membership = await self.ledger.find(room.id, user.id)
        user_type = await self._user_type(user)
        caps = self._capabilities(user_type, room, membership, user)
        return RoomEnvelope(data=RoomResponse.from_room(room, caps, creator=room.creator), meta=caps)

    async def join_by_code(self, user: CurrentUser, join_code: str) -> JoinEnvelope:
        """
        Join a room via its join code, as a pending request or directly,
        depending on the policy.

        Raises:
            InvalidJoinCodeException: If no room has this code
            RoomNotFoundException: If the room was deleted
            ArchivedRoomException: If the room is archived
            AlreadyMemberException: If a conflicting membership exists
        """
        code = normalize_join_code(join_code)
        if not code:
            raise ValidationException(detail="Join code is required")

        room = await self.registry.get_by_join_code(code)
        if room is None:
            raise InvalidJoinCodeException()
        if room.is_deleted:
            raise RoomNotFoundException()
        if is_frozen(room, self.policy):
            raise ArchivedRoomException(detail="Cannot join archived room")

        user_type = await self._user_type(user)
        existing = await self.ledger.find(room.id, user.id)
        caps = self._capabilities(user_type, room, existing, user)
        if caps.is_creator:
            raise AlreadyMemberException(detail="You created this room")
        # An existing membership falls through to the ledger's Conflict
        if existing is None:
            require(caps.can_join, f"{user_type.value} users already have access to every room")

        if self.policy.require_join_approval:
            membership = await self.ledger.create_pending(room.id, user.id)
            message = "Join request sent successfully. Waiting for approval."
        else:
            membership = await self.ledger.create_accepted(room.id, user.id)
            await self.registry.increment_counters(room.id, members=1)
            message = "Successfully joined room"

        await self.db.commit()
        await self.db.refresh(room)
        logger.info(f"User {user.id} joined room {room.id} (pending={membership.is_pending})")

        caps = self._capabilities(user_type, room, membership, user)
        result = JoinResult(
            room_id=room.id,
            room_name=room.name,
            membership_id=membership.id,
            is_pending=membership.is_pending,
            message=message,
        )
        return JoinEnvelope(data=result, meta=caps)

    async def leave_room(self, room_id: UUID, user: CurrentUser) -> LeaveEnvelope:
        """
        Remove the caller's membership; a pending request counts as one.

        Only an accepted membership is subtracted from ``members_count``.
        """
        ctx = await self._context(room_id, user)
        membership = ctx.membership
        if membership is None:
            raise MembershipNotFoundException(detail="You are not a member of this room")

        was_accepted = not membership.is_pending
        await self.ledger.delete(membership)
        if was_accepted:
            await self.registry.increment_counters(ctx.room.id, members=-1)

        await self.db.commit()
        logger.info(f"User {user.id} left room {ctx.room.id} (was_accepted={was_accepted})")

        caps = await self._refreshed_caps(ctx, user)
        message = "Successfully left the room" if was_accepted else "Join request withdrawn"
        return LeaveEnvelope(data=LeaveResult(room_id=ctx.room.id, message=message), meta=caps)

    async def toggle_archive(self, room_id: UUID, user: CurrentUser) -> ArchiveEnvelope:
        if not self.policy.supports_archive:
            raise ForbiddenException(detail="Archiving rooms is not enabled")

        ctx = await self._context(room_id, user)
        require(ctx.caps.can_moderate, "Only room creator or admin can archive/unarchive room")

        await self.registry.set_archived(ctx.room, not ctx.room.is_archived)
        await self.db.commit()
        logger.info(f"Room {ctx.room.id} archived={ctx.room.is_archived} by {user.id}")

        caps = await self._refreshed_caps(ctx, user)
        return ArchiveEnvelope(
            data=ArchiveResult(room_id=ctx.room.id, is_archived=ctx.room.is_archived),
            meta=caps,
        )

    async def delete_room(self, room_id: UUID, user: CurrentUser) -> DeleteEnvelope:
        """
        Soft-delete a room. Terminal: the room disappears from every other
        operation, while memberships and posts stay in place.
        """
        room = await self.registry.get_including_deleted(room_id)
        if room is None:
            raise RoomNotFoundException()
        if room.is_deleted:
            raise RoomNotFoundException(detail="Room already deleted")

        membership = await self.ledger.find(room.id, user.id)
        user_type = await self._user_type(user)
        caps = self._capabilities(user_type, room, membership, user)
        require(caps.can_delete, "Only room creator can delete room")

        await self.registry.soft_delete(room)
        await self.db.commit()
        logger.info(f"Room {room.id} deleted by {user.id}")

        return DeleteEnvelope(data=DeleteResult(room_id=room.id), meta=caps)

    async def toggle_hide(self, room_id: UUID, user: CurrentUser) -> HideEnvelope:
        """Personal hide/unhide stored on the caller's membership row; affects only their listings."""
        if not self.policy.supports_hide:
            raise ForbiddenException(detail="Hiding rooms is not enabled")

        ctx = await self._context(room_id, user)
        if ctx.membership is None:
            raise MembershipNotFoundException(detail="You are not a member of this room")

        membership = await self.ledger.set_flags(ctx.membership, is_hidden=not ctx.membership.is_hidden)
        await self.db.commit()

        return HideEnvelope(
            data=HideResult(room_id=ctx.room.id, is_hidden=membership.is_hidden),
            meta=ctx.caps,
        )

    async def update_room(self, room_id: UUID, user: CurrentUser, request: UpdateRoomRequest) -> RoomEnvelope:
        ctx = await self._context(room_id, user)
        require(ctx.caps.can_moderate, "Only room creator or admin can update room details")

        await self.registry.update_fields(ctx.room, request)
        await self.db.commit()

        caps = await self._refreshed_caps(ctx, user)
        return RoomEnvelope(data=RoomResponse.from_room(ctx.room, caps), meta=caps)

    async def update_cover_image(self, room_id: UUID, user: CurrentUser, local_path: str) -> RoomEnvelope:
        """
        Upload a new cover image and point the room at it.

        The previous image is deleted from storage after the commit, on a
        best-effort basis: a failed deletion is only logged.
        If the commit fails, the freshly uploaded image is discarded the same
        way before the error propagates.
        """
        if not local_path:
            raise ValidationException(detail="Cover image missing")

        ctx = await self._context(room_id, user)
        require(ctx.caps.can_moderate, "Permission denied")

        uploaded = await self.asset_storage.upload(local_path)
        previous = ctx.room.cover_image

        try:
            await self.registry.set_cover_image(ctx.room, uploaded["url"])
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            await self._discard_asset(
                uploaded.get("public_id") or self.asset_storage.asset_id_from_url(uploaded["url"])
            )
            raise

        await self._discard_asset(self.asset_storage.asset_id_from_url(previous))

        caps = await self._refreshed_caps(ctx, user)
        return RoomEnvelope(data=RoomResponse.from_room(ctx.room, caps), meta=caps)

    async def _discard_asset(self, asset_id: Optional[str]) -> None:
        if not asset_id:
            return
        try:
            deleted = await self.asset_storage.delete(asset_id)
        except Exception as e:
            logger.warning(f"Failed to delete cover image {asset_id}: {e}")
            return
        if not deleted:
            logger.warning(f"Asset storage did not delete cover image {asset_id}")

    # ------------------------------------------------------------------
    # listings
    # ------------------------------------------------------------------

    def _room_list_item(self, user_type: UserType, room: Room, membership: Optional[RoomMembership], user: CurrentUser) -> RoomListItem:
        caps = self._capabilities(user_type, room, membership, user)
        return RoomListItem(
            room=RoomResponse.from_room(room, caps, creator=room.creator),
            is_cr=bool(membership.is_cr) if membership else False,
            is_hidden=bool(membership.is_hidden) if membership else False,
            meta=caps,
        )

    async def _list_memberships(
        self,
        user: CurrentUser,
        page: int,
        limit: int,
        hidden: Optional[bool],
        archived: Optional[bool],
    ) -> RoomPageEnvelope:
        validate_page(page, limit, self.max_page_size)
        user_type = await self._user_type(user)
        memberships, total = await self.ledger.list_by_user(
            user.id, page, limit, hidden=hidden, archived=archived
        )
        items = [
            self._room_list_item(user_type, membership.room, membership, user)
            for membership in memberships
        ]
        return RoomPageEnvelope(
            data=Page[RoomListItem].build(items, total, page, limit),
            meta=self._listing_meta(user_type),
        )

    async def list_my_rooms(self, user: CurrentUser, page: int = 1, limit: int = 10) -> RoomPageEnvelope:
        """Accepted memberships in live rooms, excluding hidden and archived rooms."""
        return await self._list_memberships(
            user,
            page,
            limit,
            hidden=False if self.policy.supports_hide else None,
            archived=False if self.policy.supports_archive else None,
        )

    async def list_hidden_rooms(self, user: CurrentUser, page: int = 1, limit: int = 10) -> RoomPageEnvelope:
        if not self.policy.supports_hide:
            raise ForbiddenException(detail="Hiding rooms is not enabled")
        return await self._list_memberships(
            user,
            page,
            limit,
            hidden=True,
            archived=False if self.policy.supports_archive else None,
        )

    async def list_archived_rooms(self, user: CurrentUser, page: int = 1, limit: int = 10) -> RoomPageEnvelope:
        """Archived rooms regardless of the caller's hide flag."""
        if not self.policy.supports_archive:
            raise ForbiddenException(detail="Archiving rooms is not enabled")
        return await self._list_memberships(user, page, limit, hidden=None, archived=True)

    async def list_all_rooms(self, user: CurrentUser, page: int = 1, limit: int = 10) -> RoomPageEnvelope:
        """Directory of every live room, each with the caller's capabilities."""
        validate_page(page, limit, self.max_page_size)
        user_type = await self._user_type(user)
        rooms, total = await self.registry.list_rooms(page, limit)
        memberships = await self.ledger.find_many(user.id, [room.id for room in rooms])
        items = [
            self._room_list_item(user_type, room, memberships.get(room.id), user)
            for room in rooms
        ]
        return RoomPageEnvelope(
            data=Page[RoomListItem].build(items, total, page, limit),
            meta=self._listing_meta(user_type),
        )

    async def list_room_members(self, room_id: UUID, user: CurrentUser, page: int = 1, limit: int = 10) -> MemberPageEnvelope:
        validate_page(page, limit, self.max_page_size)
        ctx = await self._context(room_id, user)
        require(ctx.caps.can_read, "You are not a member of this room")

        memberships, total = await self.ledger.list_by_room(ctx.room.id, page, limit, pending=False)
        members = [self._member_response(ctx.room, membership, user) for membership in memberships]
        return MemberPageEnvelope(
            data=Page[MemberResponse].build(members, total, page, limit),
            meta=ctx.caps,
        )

    def _member_response(self, room: Room, membership: RoomMembership, user: CurrentUser) -> MemberResponse:
        return MemberResponse(
            user=UserSummary.model_validate(membership.user),
            meta=MemberMeta(
                membership_id=membership.id,
                role=resolve_member_role(room, membership, membership.user_id) or MemberRole.MEMBER,
                is_self=membership.user_id == user.id,
                is_cr=membership.is_cr,
                is_admin=membership.is_admin,
                is_creator=room.creator_id == membership.user_id,
            ),
        )

    # ------------------------------------------------------------------
    # join requests & roles
    # ------------------------------------------------------------------

    async def list_pending_requests(self, room_id: UUID, user: CurrentUser, page: int = 1, limit: int = 10) -> JoinRequestPageEnvelope:
        validate_page(page, limit, self.max_page_size)
        ctx = await self._context(room_id, user)
        require(
            ctx.caps.can_approve_requests,
            "Only teachers (who are members), admins, or owners can view join requests",
        )

        requests, total = await self.ledger.list_by_room(ctx.room.id, page, limit, pending=True)
        items = [
            JoinRequestResponse(
                id=request.id,
                user=UserSummary.model_validate(request.user),
                requested_at=request.created_at,
            )
            for request in requests
        ]
        return JoinRequestPageEnvelope(
            data=Page[JoinRequestResponse].build(items, total, page, limit),
            meta=ctx.caps,
        )

    async def _pending_request(self, ctx: RoomContext, membership_id: UUID) -> RoomMembership:
        membership = await self.ledger.get(membership_id)
        if membership.room_id != ctx.room.id:
            raise MembershipNotFoundException(detail="Join request not found")
        return membership

    async def approve_request(self, room_id: UUID, membership_id: UUID, approver: CurrentUser) -> RequestDecisionEnvelope:
        """
        Accept a pending join request and count the new member.

        Raises:
            ForbiddenException: If the approver may not approve requests here
            MembershipNotFoundException: If the request does not exist in this room
            InvalidStateException: If the request was already accepted
        """
        ctx = await self._context(room_id, approver)
        require(
            ctx.caps.can_approve_requests,
            "Only teachers (who are members), admins, or owners can accept join requests",
        )

        membership = await self._pending_request(ctx, membership_id)
        await self.ledger.accept(membership)
        await self.registry.increment_counters(ctx.room.id, members=1)

        await self.db.commit()
        logger.info(f"Join request {membership.id} for room {ctx.room.id} approved by {approver.id}")

        result = RequestDecisionResult(
            membership_id=membership.id,
            user_id=membership.user_id,
            message="Join request accepted successfully",
        )
        return RequestDecisionEnvelope(data=result, meta=await self._refreshed_caps(ctx, approver))

    async def reject_request(self, room_id: UUID, membership_id: UUID, approver: CurrentUser) -> RequestDecisionEnvelope:
        ctx = await self._context(room_id, approver)
        require(
            ctx.caps.can_approve_requests,
            "Only teachers (who are members), admins, or owners can reject join requests",
        )

        membership = await self._pending_request(ctx, membership_id)
        if not membership.is_pending:
            raise InvalidStateException(detail="This request has already been accepted")
        result = RequestDecisionResult(
            membership_id=membership.id,
            user_id=membership.user_id,
            message="Join request rejected",
        )
        await self.ledger.reject(membership)

        await self.db.commit()
        logger.info(f"Join request {membership_id} for room {ctx.room.id} rejected by {approver.id}")

        return RequestDecisionEnvelope(data=result, meta=ctx.caps)

    async def update_member_role(
        self,
        room_id: UUID,
        membership_id: UUID,
        user: CurrentUser,
        request: UpdateMemberRoleRequest,
    ) -> MemberEnvelope:
        """
        Promote or demote a member. Room admins may change the CR flag;
        only the creator may grant or revoke room-admin.
        """
        ctx = await self._context(room_id, user)
        require(ctx.caps.can_manage_members, "Only room creator or admin can change member roles")
        if request.is_admin is not None:
            require(ctx.caps.is_creator, "Only room creator can change room admins")

        membership = await self.ledger.get(membership_id)
        if membership.room_id != ctx.room.id:
            raise MembershipNotFoundException()
        if membership.is_pending:
            raise InvalidStateException(detail="Cannot change the role of a pending request")

        await self.ledger.set_flags(membership, is_admin=request.is_admin, is_cr=request.is_cr)
        await self.db.commit()
        await self.db.refresh(membership, attribute_names=["user"])

        return MemberEnvelope(data=self._member_response(ctx.room, membership, user), meta=ctx.caps)

    # ------------------------------------------------------------------
    # posts
    # ------------------------------------------------------------------

    async def create_room_post(self, room_id: UUID, user: CurrentUser, request: CreatePostRequest) -> PostEnvelope:
        ctx = await self._context(room_id, user)
        require(ctx.caps.is_member, "You must be a member to post in this room")
        if is_frozen(ctx.room, self.policy):
            raise ArchivedRoomException(detail="Cannot post in archived room")
        require(ctx.caps.can_post, "Member posting is disabled in this room")

        post = await self.posts.create_post(
            PostPayload(content=request.content, target_kind=PostTargetKind.ROOM, target_id=ctx.room.id),
            user.id,
        )
        await self.registry.increment_counters(ctx.room.id, posts=1)
        await self.db.commit()

        item = PostItem(
            post=PostResponse.model_validate(post),
            meta=PostMeta(is_read=False, is_mine=True, can_delete=True),
        )
        return PostEnvelope(data=item, meta=await self._refreshed_caps(ctx, user))

    async def list_room_posts(self, room_id: UUID, user: CurrentUser, page: int = 1, limit: int = 10) -> PostPageEnvelope:
        validate_page(page, limit, self.max_page_size)
        ctx = await self._context(room_id, user)
        require(ctx.caps.can_read, "You are not a member of this room")

        posts, total = await self.posts.list_posts(PostTargetKind.ROOM, ctx.room.id, page, limit)
        read_ids = await self.posts.read_post_ids(user.id, [post.id for post in posts])

        items: List[PostItem] = []
        for post in posts:
            is_mine = post.author_id == user.id
            items.append(
                PostItem(
                    post=PostResponse.model_validate(post),
                    meta=PostMeta(
                        is_read=post.id in read_ids,
                        is_mine=is_mine,
                        can_delete=is_mine or ctx.caps.can_moderate,
                    ),
                )
            )
        return PostPageEnvelope(data=Page[PostItem].build(items, total, page, limit), meta=ctx.caps)

    async def mark_post_read(self, room_id: UUID, post_id: UUID, user: CurrentUser) -> None:
        ctx = await self._context(room_id, user)
        require(ctx.caps.can_read, "You are not a member of this room")

        post = await self.posts.get_post(post_id)
        if post.target_kind != PostTargetKind.ROOM or post.target_id != ctx.room.id:
            raise PostNotFoundException()

        await self.posts.mark_read(post.id, user.id)
        await self.db.commit()

    # ------------------------------------------------------------------
    # maintenance
    # ------------------------------------------------------------------

    async def _reconcile(self, room: Room) -> CounterDrift:
        members = await self.ledger.count_accepted(room.id)
        posts = await self.posts.count_posts(PostTargetKind.ROOM, room.id)
        return await self.registry.reconcile_counters(room, members_count=members, posts_count=posts)

    async def reconcile_room_counters(self, room_id: UUID, user: CurrentUser) -> CounterDrift:
        """Recount one room's counters. Platform owners and admins only."""
        ctx = await self._context(room_id, user)
        require(ctx.caps.can_reconcile_counters, "Only owners or admins can reconcile room counters")

        drift = await self._reconcile(ctx.room)
        await self.db.commit()
        return drift

    async def reconcile_all_counters(self, batch_size: int = 100) -> List[CounterDrift]:
        """Recount every live room, committing per batch. Returns only drifted rooms."""
        drifted: List[CounterDrift] = []
        after = None
        while True:
            room_ids = await self.registry.list_room_ids(after, batch_size)
            if not room_ids:
                break
            for room_id in room_ids:
                drift = await self._reconcile(await self.registry.get(room_id))
                if drift.drifted:
                    drifted.append(drift)
            await self.db.commit()
            after = room_ids[-1]
        logger.info(f"Counter reconciliation finished: {len(drifted)} room(s) corrected")
        return drifted
