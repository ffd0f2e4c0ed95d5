from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from roomgate.core.config import settings
from roomgate.dependencies.auth_dependencies import get_current_user
from roomgate.dependencies.service_dependencies import get_room_service
from roomgate.schemas.room import (
    ArchiveEnvelope,
    CounterDrift,
    CreateRoomRequest,
    DeleteEnvelope,
    HideEnvelope,
    JoinEnvelope,
    JoinRoomRequest,
    RoomEnvelope,
    RoomPageEnvelope,
    UpdateRoomRequest,
)
from roomgate.schemas.user import CurrentUser
from roomgate.services.room_service import RoomService
from roomgate.utils.uploads import remove_temp, save_upload_to_temp

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

# Static paths are declared before "/{room_id}" so they are not parsed as ids.

@router.post("", response_model=RoomEnvelope, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: CreateRoomRequest,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Create a new room.

    Args:
        request: Room creation request
        current_user: Authenticated caller
        room_service: Room service instance

    Returns:
        The created room with the caller's capabilities
    """
    return await room_service.create_room(current_user, request)

@router.get("", response_model=RoomPageEnvelope)
async def list_rooms(
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Directory of all live rooms, each with the caller's capabilities.
    """
    return await room_service.list_all_rooms(current_user, page=page, limit=limit)

@router.get("/mine", response_model=RoomPageEnvelope)
async def list_my_rooms(
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Rooms the caller belongs to, without hidden or archived ones.
    """
    return await room_service.list_my_rooms(current_user, page=page, limit=limit)

@router.get("/hidden", response_model=RoomPageEnvelope)
async def list_hidden_rooms(
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.list_hidden_rooms(current_user, page=page, limit=limit)

@router.get("/archived", response_model=RoomPageEnvelope)
async def list_archived_rooms(
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.list_archived_rooms(current_user, page=page, limit=limit)

@router.post("/join", response_model=JoinEnvelope)
async def join_room(
    request: JoinRoomRequest,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Join a room by its join code.

    Depending on the deployment this either admits the caller directly or
    files a pending request for approval.
    """
    return await room_service.join_by_code(current_user, request.join_code)

@router.get("/{room_id}", response_model=RoomEnvelope)
async def get_room(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.get_room_details(room_id, current_user)

@router.patch("/{room_id}", response_model=RoomEnvelope)
async def update_room(
    room_id: UUID,
    request: UpdateRoomRequest,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Update room details. Room creator or room admin only.
    """
    return await room_service.update_room(room_id, current_user, request)

@router.patch("/{room_id}/cover-image", response_model=RoomEnvelope)
async def update_cover_image(
    room_id: UUID,
    cover_image: UploadFile = File(...),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Replace the room's cover image with an uploaded file.

    Only images up to ``settings.cover_image_max_size`` bytes are accepted.
    The upload is spooled to a temporary file that is removed afterwards.
    """
    local_path = await save_upload_to_temp(
        cover_image,
        max_file_size=settings.cover_image_max_size,
        accepted_content_types=settings.cover_image_content_types,
    )
    try:
        return await room_service.update_cover_image(room_id, current_user, local_path)
    finally:
        await remove_temp(local_path)

@router.patch("/{room_id}/archive", response_model=ArchiveEnvelope)
async def toggle_archive(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.toggle_archive(room_id, current_user)

@router.patch("/{room_id}/hide", response_model=HideEnvelope)
async def toggle_hide(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.toggle_hide(room_id, current_user)

@router.delete("/{room_id}", response_model=DeleteEnvelope)
async def delete_room(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Soft-delete a room. Room creator only.
    """
    return await room_service.delete_room(room_id, current_user)

@router.post("/{room_id}/reconcile", response_model=CounterDrift)
async def reconcile_counters(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Recount members and posts of a room and fix stored counters.
    Platform owners and admins only.
    """
    return await room_service.reconcile_room_counters(room_id, current_user)
