from uuid import UUID

from fastapi import APIRouter, Depends, Query

from roomgate.core.config import settings
from roomgate.dependencies.auth_dependencies import get_current_user
from roomgate.dependencies.service_dependencies import get_room_service
from roomgate.schemas.membership import (
    JoinRequestPageEnvelope,
    MemberEnvelope,
    MemberPageEnvelope,
    RequestDecisionEnvelope,
    UpdateMemberRoleRequest,
)
from roomgate.schemas.room import LeaveEnvelope
from roomgate.schemas.user import CurrentUser
from roomgate.services.room_service import RoomService

router = APIRouter(prefix="/api/rooms", tags=["room members"])

@router.get("/{room_id}/members", response_model=MemberPageEnvelope)
async def list_members(
    room_id: UUID,
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Accepted members of a room, each with role flags.
    """
    return await room_service.list_room_members(room_id, current_user, page=page, limit=limit)

@router.patch("/{room_id}/members/{membership_id}", response_model=MemberEnvelope)
async def update_member_role(
    room_id: UUID,
    membership_id: UUID,
    request: UpdateMemberRoleRequest,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.update_member_role(room_id, membership_id, current_user, request)

@router.post("/{room_id}/leave", response_model=LeaveEnvelope)
async def leave_room(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Leave a room, or withdraw a pending join request.
    """
    return await room_service.leave_room(room_id, current_user)

@router.get("/{room_id}/requests", response_model=JoinRequestPageEnvelope)
async def list_join_requests(
    room_id: UUID,
    page: int = Query(1),
    limit: int = Query(settings.default_page_size),
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.list_pending_requests(room_id, current_user, page=page, limit=limit)

@router.post("/{room_id}/requests/{membership_id}/approve", response_model=RequestDecisionEnvelope)
async def approve_join_request(
    room_id: UUID,
    membership_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    """
    Accept a pending join request.

    Args:
        room_id: ID of the room
        membership_id: ID of the pending membership
        current_user: Authenticated approver
        room_service: Room service instance
    """
    return await room_service.approve_request(room_id, membership_id, current_user)

@router.post("/{room_id}/requests/{membership_id}/reject", response_model=RequestDecisionEnvelope)
async def reject_join_request(
    room_id: UUID,
    membership_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    room_service: RoomService = Depends(get_room_service)
):
    return await room_service.reject_request(room_id, membership_id, current_user)
