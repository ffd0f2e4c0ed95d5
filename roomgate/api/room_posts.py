from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from roomgate.core.config import settings
from roomgate.dependencies.auth_dependencies import get_current_user
from roomgate.dependencies.service_dependencies import get_room_service
from roomgate.schemas.post import CreatePostRequest, PostEnvelope, PostPageEnvelope
from roomgate.schemas.user import CurrentUser
from roomgate.services.room_service import RoomService

router = APIRouter(prefix="/api/rooms", tags=["room posts"])

@router.get("/{room_id}/posts", response_model=PostPageEnvelope)
async def list_posts(
    room_id: UUID,
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Posts in a room, newest first, with read state for the caller.
    """
    return await room_service.list_room_posts(room_id, current_user, page=page, limit=limit)

@router.post("/{room_id}/posts", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    room_id: UUID,
    request: CreatePostRequest,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.create_room_post(room_id, current_user, request)

@router.post("/{room_id}/posts/{post_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_post_read(
    room_id: UUID,
    post_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    await room_service.mark_post_read(room_id, post_id, current_user)
