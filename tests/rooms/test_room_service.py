import uuid

import pytest

from roomgate.core.exceptions import (
    AlreadyMemberException,
    ArchivedRoomException,
    ForbiddenException,
    InvalidJoinCodeException,
    InvalidStateException,
    JoinCodeConflictException,
    MembershipNotFoundException,
    RoomNotFoundException,
    ValidationException,
)
from roomgate.core.policy import OWNER_BRANCHES
from roomgate.schemas.membership import UpdateMemberRoleRequest
from roomgate.schemas.post import CreatePostRequest
from roomgate.schemas.room import MemberRole, RoomSettingsPatch, UpdateRoomRequest
from roomgate.services.join_codes import is_well_formed
from roomgate.services.membership_ledger import MembershipLedger
from roomgate.services.room_registry import RoomRegistry


def codes(*values):
    it = iter(values)
    return lambda: next(it)


# ---------------------------------------------------------------------------
# creation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_teacher_creates_room_and_is_enrolled(room_service, teacher, room_request):
    result = await room_service.create_room(teacher, room_request())

    room = result.data
    assert is_well_formed(room.join_code)
    assert room.members_count == 1
    assert room.posts_count == 0
    assert room.cover_image == room_service.default_cover_image
    assert result.meta.role == MemberRole.CREATOR
    assert result.meta.visible_join_code == room.join_code

    membership = await room_service.ledger.find(room.id, teacher.id)
    assert membership is not None and membership.is_pending is False


@pytest.mark.asyncio
async def test_student_cannot_create_room(room_service, student, room_request):
    with pytest.raises(ForbiddenException):
        await room_service.create_room(student, room_request())


@pytest.mark.asyncio
async def test_blank_room_name_rejected(room_service, teacher, room_request):
    with pytest.raises(ValidationException):
        await room_service.create_room(teacher, room_request(name="   "))


@pytest.mark.asyncio
async def test_owner_branch_starts_empty(make_service, owner, teacher, room_request):
    service = make_service(OWNER_BRANCHES)

    result = await service.create_room(owner, room_request("North Branch"))

    assert result.data.members_count == 0
    assert await service.ledger.find(result.data.id, owner.id) is None
    with pytest.raises(ForbiddenException):
        await service.create_room(teacher, room_request("South Branch"))


@pytest.mark.asyncio
async def test_join_code_drawn_again_when_already_used(make_service, teacher, room_request):
    first = await make_service(join_code_generator=codes("AAAAAA")).create_room(teacher, room_request())
    service = make_service(join_code_generator=codes("AAAAAA", "BBBBBB"))

    second = await service.create_room(teacher, room_request("Chemistry"))

    assert first.data.join_code == "AAAAAA"
    assert second.data.join_code == "BBBBBB"


@pytest.mark.asyncio
async def test_join_code_insert_race_retries_with_new_code(make_service, teacher, room_request, monkeypatch):
    await make_service(join_code_generator=codes("AAAAAA")).create_room(teacher, room_request())
    service = make_service(join_code_generator=codes("AAAAAA", "BBBBBB"))

    async def never_taken(join_code):
        return False

    # Simulate losing the race: the pre-check passes but the insert collides
    monkeypatch.setattr(service.registry, "join_code_exists", never_taken)

    result = await service.create_room(teacher, room_request("Chemistry"))

    assert result.data.join_code == "BBBBBB"
    assert result.data.members_count == 1


@pytest.mark.asyncio
async def test_join_code_insert_race_gives_up_after_attempts(make_service, teacher, room_request, monkeypatch):
    await make_service(join_code_generator=codes("AAAAAA")).create_room(teacher, room_request())
    service = make_service(join_code_generator=lambda: "AAAAAA", join_code_insert_attempts=2)

    async def never_taken(join_code):
        return False

    monkeypatch.setattr(service.registry, "join_code_exists", never_taken)

    with pytest.raises(JoinCodeConflictException) as exc_info:
        await service.create_room(teacher, room_request("Chemistry"))
    assert exc_info.value.retryable is True


# ---------------------------------------------------------------------------
# joining
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_direct_join_increments_members(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())

    joined = await room_service.join_by_code(student, created.data.join_code.lower())

    assert joined.data.is_pending is False
    assert joined.meta.role == MemberRole.MEMBER
    room = await room_service.get_room(created.data.id)
    assert room.members_count == 2


@pytest.mark.asyncio
async def test_second_join_is_conflict_and_counter_unchanged(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)

    with pytest.raises(AlreadyMemberException):
        await room_service.join_by_code(student, created.data.join_code)

    room = await room_service.get_room(created.data.id)
    assert room.members_count == 2


@pytest.mark.asyncio
async def test_unknown_join_code(room_service, student):
    with pytest.raises(InvalidJoinCodeException):
        await room_service.join_by_code(student, "ZZZZZZ")


@pytest.mark.asyncio
async def test_cannot_join_archived_room(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.toggle_archive(created.data.id, teacher)

    with pytest.raises(ArchivedRoomException):
        await room_service.join_by_code(student, created.data.join_code)


@pytest.mark.asyncio
async def test_teacher_approval_scenario(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy, join_code_generator=codes("K7X2PQ"))

    created = await service.create_room(teacher, room_request())
    assert created.data.join_code == "K7X2PQ"
    assert created.data.members_count == 0

    joined = await service.join_by_code(student, "K7X2PQ")
    assert joined.data.is_pending is True
    assert (await service.get_room(created.data.id)).members_count == 0

    requests = await service.list_pending_requests(created.data.id, teacher)
    assert requests.data.total_docs == 1

    approved = await service.approve_request(created.data.id, joined.data.membership_id, teacher)
    assert approved.data.user_id == student.id

    assert (await service.get_room(created.data.id)).members_count == 1
    membership = await service.ledger.find(created.data.id, student.id)
    assert membership.is_pending is False

    with pytest.raises(InvalidStateException):
        await service.approve_request(created.data.id, joined.data.membership_id, teacher)


@pytest.mark.asyncio
async def test_pending_user_cannot_approve_self(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())
    joined = await service.join_by_code(student, created.data.join_code)

    with pytest.raises(ForbiddenException):
        await service.approve_request(created.data.id, joined.data.membership_id, student)


@pytest.mark.asyncio
async def test_approve_request_of_another_room(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy)
    first = await service.create_room(teacher, room_request())
    second = await service.create_room(teacher, room_request("Chemistry"))
    joined = await service.join_by_code(student, first.data.join_code)

    with pytest.raises(MembershipNotFoundException):
        await service.approve_request(second.data.id, joined.data.membership_id, teacher)


@pytest.mark.asyncio
async def test_reject_removes_request_without_touching_counter(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())
    joined = await service.join_by_code(student, created.data.join_code)

    await service.reject_request(created.data.id, joined.data.membership_id, teacher)

    assert await service.ledger.find(created.data.id, student.id) is None
    assert (await service.get_room(created.data.id)).members_count == 0

    again = await service.join_by_code(student, created.data.join_code)
    assert again.data.is_pending is True


@pytest.mark.asyncio
async def test_single_room_conflict_names_first_room(make_service, owner, student, room_request):
    service = make_service(OWNER_BRANCHES)
    north = await service.create_room(owner, room_request("North Branch"))
    south = await service.create_room(owner, room_request("South Branch"))

    await service.join_by_code(student, north.data.join_code)

    with pytest.raises(AlreadyMemberException) as exc_info:
        await service.join_by_code(student, south.data.join_code)
    assert "North Branch" in exc_info.value.detail


@pytest.mark.asyncio
async def test_owner_approves_branch_requests(make_service, owner, student, room_request):
    service = make_service(OWNER_BRANCHES)
    branch = await service.create_room(owner, room_request("North Branch"))
    joined = await service.join_by_code(student, branch.data.join_code)

    await service.approve_request(branch.data.id, joined.data.membership_id, owner)

    assert (await service.get_room(branch.data.id)).members_count == 1


@pytest.mark.asyncio
async def test_implicit_members_do_not_join(make_service, owner, platform_admin, room_request):
    service = make_service(OWNER_BRANCHES)
    branch = await service.create_room(owner, room_request("North Branch"))

    with pytest.raises(ForbiddenException):
        await service.join_by_code(platform_admin, branch.data.join_code)


@pytest.mark.asyncio
async def test_creator_cannot_join_own_room(make_service, approval_policy, teacher, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())

    with pytest.raises(AlreadyMemberException) as exc_info:
        await service.join_by_code(teacher, created.data.join_code)
    assert exc_info.value.detail == "You created this room"
    assert await service.ledger.find(created.data.id, teacher.id) is None


# ---------------------------------------------------------------------------
# leaving
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_leave_accepted_decrements_members(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)

    left = await room_service.leave_room(created.data.id, student)

    assert left.meta.is_member is False
    assert (await room_service.get_room(created.data.id)).members_count == 1


@pytest.mark.asyncio
async def test_leave_pending_keeps_counter(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())
    await service.join_by_code(student, created.data.join_code)

    await service.leave_room(created.data.id, student)

    assert (await service.get_room(created.data.id)).members_count == 0
    assert await service.ledger.find(created.data.id, student.id) is None


@pytest.mark.asyncio
async def test_leave_without_membership(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    with pytest.raises(MembershipNotFoundException):
        await room_service.leave_room(created.data.id, student)


# ---------------------------------------------------------------------------
# archive, delete, hide
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_archive_toggle_by_moderator_only(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)

    with pytest.raises(ForbiddenException):
        await room_service.toggle_archive(created.data.id, student)

    archived = await room_service.toggle_archive(created.data.id, teacher)
    assert archived.data.is_archived is True
    assert archived.meta.can_post is False

    restored = await room_service.toggle_archive(created.data.id, teacher)
    assert restored.data.is_archived is False


@pytest.mark.asyncio
async def test_archive_disabled_for_branches(make_service, owner, room_request):
    service = make_service(OWNER_BRANCHES)
    branch = await service.create_room(owner, room_request("North Branch"))

    with pytest.raises(ForbiddenException):
        await service.toggle_archive(branch.data.id, owner)
    with pytest.raises(ForbiddenException):
        await service.toggle_hide(branch.data.id, owner)


@pytest.mark.asyncio
async def test_hide_needs_a_membership_row(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())

    # The creator holds every room capability but has no listing entry to hide
    details = await service.get_room_details(created.data.id, teacher)
    assert details.meta.can_moderate is True
    with pytest.raises(MembershipNotFoundException):
        await service.toggle_hide(created.data.id, teacher)
    with pytest.raises(MembershipNotFoundException):
        await service.toggle_hide(created.data.id, student)

    # A pending request is a membership row and can be hidden
    await service.join_by_code(student, created.data.join_code)
    toggled = await service.toggle_hide(created.data.id, student)
    assert toggled.data.is_hidden is True


@pytest.mark.asyncio
async def test_delete_scenario(make_service, owner, student, room_request, async_session):
    service = make_service(OWNER_BRANCHES)
    branch = await service.create_room(owner, room_request("North Branch"))
    joined = await service.join_by_code(student, branch.data.join_code)
    await service.approve_request(branch.data.id, joined.data.membership_id, owner)

    deleted = await service.delete_room(branch.data.id, owner)
    assert deleted.data.room_id == branch.data.id

    with pytest.raises(RoomNotFoundException):
        await service.get_room(branch.data.id)
    with pytest.raises(RoomNotFoundException):
        await service.list_room_members(branch.data.id, student)
    with pytest.raises(RoomNotFoundException):
        await service.leave_room(branch.data.id, student)

    membership = await MembershipLedger(async_session, OWNER_BRANCHES).find(branch.data.id, student.id)
    assert membership is not None and membership.is_pending is False

    with pytest.raises(RoomNotFoundException) as exc_info:
        await service.delete_room(branch.data.id, owner)
    assert exc_info.value.detail == "Room already deleted"


@pytest.mark.asyncio
async def test_only_creator_deletes(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    joined = await room_service.join_by_code(student, created.data.join_code)
    await room_service.update_member_role(
        created.data.id, joined.data.membership_id, teacher, UpdateMemberRoleRequest(is_admin=True)
    )

    with pytest.raises(ForbiddenException):
        await room_service.delete_room(created.data.id, student)


@pytest.mark.asyncio
async def test_deleted_room_join_code_not_reused(make_service, teacher, student, room_request):
    service = make_service(join_code_generator=codes("AAAAAA", "AAAAAA", "BBBBBB"))
    created = await service.create_room(teacher, room_request())
    await service.delete_room(created.data.id, teacher)

    with pytest.raises(RoomNotFoundException):
        await service.join_by_code(student, "AAAAAA")

    replacement = await service.create_room(teacher, room_request("Physics 102"))
    assert replacement.data.join_code == "BBBBBB"


@pytest.mark.asyncio
async def test_hide_and_listings(room_service, teacher, student, room_request):
    kept = await room_service.create_room(teacher, room_request("Kept"))
    hidden = await room_service.create_room(teacher, room_request("Hidden"))
    archived = await room_service.create_room(teacher, room_request("Archived"))
    for created in (kept, hidden, archived):
        await room_service.join_by_code(student, created.data.join_code)

    toggled = await room_service.toggle_hide(hidden.data.id, student)
    assert toggled.data.is_hidden is True
    await room_service.toggle_archive(archived.data.id, teacher)

    mine = await room_service.list_my_rooms(student)
    hidden_rooms = await room_service.list_hidden_rooms(student)
    archived_rooms = await room_service.list_archived_rooms(student)

    assert [item.room.name for item in mine.data.items] == ["Kept"]
    assert [item.room.name for item in hidden_rooms.data.items] == ["Hidden"]
    assert [item.room.name for item in archived_rooms.data.items] == ["Archived"]
    assert mine.meta.can_create_rooms is False
    assert hidden_rooms.data.items[0].is_hidden is True

    # Hiding is personal
    teacher_rooms = await room_service.list_my_rooms(teacher)
    assert {item.room.name for item in teacher_rooms.data.items} == {"Kept", "Hidden"}


@pytest.mark.asyncio
async def test_directory_lists_rooms_with_caller_capabilities(room_service, teacher, student, room_request):
    joined = await room_service.create_room(teacher, room_request("Joined"))
    await room_service.create_room(teacher, room_request("Other"))
    await room_service.join_by_code(student, joined.data.join_code)

    directory = await room_service.list_all_rooms(student)

    assert directory.data.total_docs == 2
    by_name = {item.room.name: item for item in directory.data.items}
    assert by_name["Joined"].meta.is_member is True
    assert by_name["Joined"].room.join_code == joined.data.join_code
    assert by_name["Other"].meta.can_join is True
    assert by_name["Other"].room.join_code is None
    assert by_name["Other"].room.creator.username == "teacher"


@pytest.mark.asyncio
async def test_listing_page_limits(room_service, student):
    with pytest.raises(ValidationException):
        await room_service.list_all_rooms(student, page=1, limit=0)
    with pytest.raises(ValidationException):
        await room_service.list_my_rooms(student, page=0, limit=10)
    with pytest.raises(ValidationException):
        await room_service.list_all_rooms(student, page=1, limit=room_service.max_page_size + 1)


@pytest.mark.asyncio
async def test_pagination_metadata(room_service, teacher, room_request):
    for index in range(3):
        await room_service.create_room(teacher, room_request(f"Room {index}"))

    first = await room_service.list_all_rooms(teacher, page=1, limit=2)
    second = await room_service.list_all_rooms(teacher, page=2, limit=2)

    assert first.data.total_docs == 3
    assert first.data.total_pages == 2
    assert first.data.has_next_page is True
    assert len(second.data.items) == 1
    assert second.data.has_prev_page is True
    assert second.data.has_next_page is False


# ---------------------------------------------------------------------------
# details, updates, roles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_room_details_hide_join_code_from_outsiders(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())

    details = await room_service.get_room_details(created.data.id, student)

    assert details.data.join_code is None
    assert details.data.creator.username == "teacher"
    assert details.meta.can_join is True


@pytest.mark.asyncio
async def test_update_room_by_moderator(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)

    with pytest.raises(ForbiddenException):
        await room_service.update_room(created.data.id, student, UpdateRoomRequest(name="Mine now"))

    updated = await room_service.update_room(
        created.data.id,
        teacher,
        UpdateRoomRequest(description="Mechanics", settings=RoomSettingsPatch(allow_member_posting=False)),
    )

    assert updated.data.description == "Mechanics"
    assert updated.data.settings.allow_member_posting is False
    assert updated.data.join_code == created.data.join_code


@pytest.mark.asyncio
async def test_update_cover_image_replaces_hosted_asset(room_service, asset_storage, teacher, room_request):
    created = await room_service.create_room(teacher, room_request())

    first = await room_service.update_cover_image(created.data.id, teacher, "/tmp/one.jpg")
    assert first.data.cover_image.endswith("cover1.jpg")
    # The default cover is not ours to delete
    assert asset_storage.deleted == []

    second = await room_service.update_cover_image(created.data.id, teacher, "/tmp/two.jpg")
    assert second.data.cover_image.endswith("cover2.jpg")
    assert asset_storage.deleted == ["cover1"]


@pytest.mark.asyncio
async def test_update_cover_image_survives_failed_cleanup(room_service, asset_storage, teacher, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.update_cover_image(created.data.id, teacher, "/tmp/one.jpg")
    asset_storage.fail_delete = True

    result = await room_service.update_cover_image(created.data.id, teacher, "/tmp/two.jpg")

    assert result.data.cover_image.endswith("cover2.jpg")


@pytest.mark.asyncio
async def test_update_cover_image_requires_moderator(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)

    with pytest.raises(ForbiddenException):
        await room_service.update_cover_image(created.data.id, student, "/tmp/one.jpg")


@pytest.mark.asyncio
async def test_update_cover_image_discards_upload_when_commit_fails(room_service, asset_storage, teacher, room_request, monkeypatch):
    created = await room_service.create_room(teacher, room_request())

    async def broken_set_cover_image(room, url):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(room_service.registry, "set_cover_image", broken_set_cover_image)

    with pytest.raises(RuntimeError):
        await room_service.update_cover_image(created.data.id, teacher, "/tmp/one.jpg")

    assert asset_storage.deleted == ["cover1"]
    monkeypatch.undo()
    room = await room_service.get_room(created.data.id)
    assert room.cover_image == room_service.default_cover_image


@pytest.mark.asyncio
async def test_member_roles(room_service, teacher, student, make_user, room_request):
    created = await room_service.create_room(teacher, room_request())
    other = await make_user()
    promoted = await room_service.join_by_code(student, created.data.join_code)
    plain = await room_service.join_by_code(other, created.data.join_code)

    result = await room_service.update_member_role(
        created.data.id, promoted.data.membership_id, teacher, UpdateMemberRoleRequest(is_admin=True)
    )
    assert result.data.meta.role == MemberRole.ADMIN

    # Room admins may set CR but not grant admin
    with pytest.raises(ForbiddenException):
        await room_service.update_member_role(
            created.data.id, plain.data.membership_id, student, UpdateMemberRoleRequest(is_admin=True)
        )
    cr = await room_service.update_member_role(
        created.data.id, plain.data.membership_id, student, UpdateMemberRoleRequest(is_cr=True)
    )
    assert cr.data.meta.role == MemberRole.CR
    assert cr.data.meta.is_cr is True

    members = await room_service.list_room_members(created.data.id, teacher)
    roles = {member.user.username: member.meta.role for member in members.data.items}
    assert roles["teacher"] == MemberRole.CREATOR
    assert roles["student"] == MemberRole.ADMIN
    assert members.data.total_docs == 3


@pytest.mark.asyncio
async def test_pending_role_change_is_invalid(make_service, approval_policy, teacher, student, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())
    joined = await service.join_by_code(student, created.data.join_code)

    with pytest.raises(InvalidStateException):
        await service.update_member_role(
            created.data.id, joined.data.membership_id, teacher, UpdateMemberRoleRequest(is_cr=True)
        )


# ---------------------------------------------------------------------------
# posts
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_posting_counts_and_read_state(room_service, teacher, student, room_request):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)

    posted = await room_service.create_room_post(created.data.id, student, CreatePostRequest(content="Hello"))
    assert posted.data.meta.is_mine is True
    assert posted.meta.can_post is True
    assert (await room_service.get_room(created.data.id)).posts_count == 1

    listing = await room_service.list_room_posts(created.data.id, teacher)
    item = listing.data.items[0]
    assert item.post.author.username == "student"
    assert item.meta.is_mine is False
    assert item.meta.can_delete is True
    assert item.meta.is_read is False

    await room_service.mark_post_read(created.data.id, item.post.id, teacher)
    await room_service.mark_post_read(created.data.id, item.post.id, teacher)
    listing = await room_service.list_room_posts(created.data.id, teacher)
    assert listing.data.items[0].meta.is_read is True


@pytest.mark.asyncio
async def test_concurrent_read_of_same_post_is_recorded_once(room_service, teacher, room_request, monkeypatch):
    created = await room_service.create_room(teacher, room_request())
    posted = await room_service.create_room_post(created.data.id, teacher, CreatePostRequest(content="Hello"))
    await room_service.mark_post_read(created.data.id, posted.data.post.id, teacher)

    async def nothing_read(user_id, post_ids):
        return set()

    # The other request inserted its read between our check and our insert
    monkeypatch.setattr(room_service.posts, "read_post_ids", nothing_read)
    await room_service.mark_post_read(created.data.id, posted.data.post.id, teacher)
    monkeypatch.undo()

    listing = await room_service.list_room_posts(created.data.id, teacher)
    assert listing.data.items[0].meta.is_read is True


@pytest.mark.asyncio
async def test_posting_rules(room_service, teacher, student, make_user, room_request):
    created = await room_service.create_room(teacher, room_request())
    outsider = await make_user()
    await room_service.join_by_code(student, created.data.join_code)

    with pytest.raises(ForbiddenException):
        await room_service.create_room_post(created.data.id, outsider, CreatePostRequest(content="Hi"))
    with pytest.raises(ForbiddenException):
        await room_service.list_room_posts(created.data.id, outsider)

    await room_service.update_room(
        created.data.id, teacher, UpdateRoomRequest(settings=RoomSettingsPatch(allow_member_posting=False))
    )
    with pytest.raises(ForbiddenException):
        await room_service.create_room_post(created.data.id, student, CreatePostRequest(content="Hi"))
    await room_service.create_room_post(created.data.id, teacher, CreatePostRequest(content="Announcement"))

    await room_service.toggle_archive(created.data.id, teacher)
    with pytest.raises(ArchivedRoomException):
        await room_service.create_room_post(created.data.id, teacher, CreatePostRequest(content="Late"))


# ---------------------------------------------------------------------------
# counter maintenance
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reconcile_room_counters(room_service, teacher, student, platform_admin, room_request, async_session):
    created = await room_service.create_room(teacher, room_request())
    await room_service.join_by_code(student, created.data.join_code)
    await RoomRegistry(async_session).increment_counters(created.data.id, members=3, posts=1)
    await async_session.commit()

    with pytest.raises(ForbiddenException):
        await room_service.reconcile_room_counters(created.data.id, teacher)

    drift = await room_service.reconcile_room_counters(created.data.id, platform_admin)

    assert drift.drifted
    assert drift.members_count_before == 5
    assert drift.members_count_after == 2
    assert drift.posts_count_after == 0
    assert (await room_service.get_room(created.data.id)).members_count == 2


@pytest.mark.asyncio
async def test_reconcile_all_counters_reports_drifted_rooms(room_service, teacher, room_request, async_session):
    clean = await room_service.create_room(teacher, room_request("Clean"))
    drifted = await room_service.create_room(teacher, room_request("Drifted"))
    await RoomRegistry(async_session).increment_counters(drifted.data.id, posts=2)
    await async_session.commit()

    report = await room_service.reconcile_all_counters(batch_size=1)

    assert [drift.room_id for drift in report] == [drifted.data.id]
    assert (await room_service.get_room(clean.data.id)).members_count == 1


@pytest.mark.asyncio
async def test_unknown_room(room_service, student):
    with pytest.raises(RoomNotFoundException):
        await room_service.get_room_details(uuid.uuid4(), student)


@pytest.mark.asyncio
async def test_approve_nonexistent_request(make_service, approval_policy, teacher, room_request):
    service = make_service(approval_policy)
    created = await service.create_room(teacher, room_request())

    with pytest.raises(MembershipNotFoundException):
        await service.approve_request(created.data.id, uuid.uuid4(), teacher)
    assert (await service.get_room(created.data.id)).members_count == 0
