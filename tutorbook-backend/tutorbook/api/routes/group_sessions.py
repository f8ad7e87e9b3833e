"""
Group Session API Endpoints

Students join and leave group sessions; admins approve ready groups by
assigning tutors, and may cancel or delete them.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, Query, Response
from pydantic import BaseModel

from tutorbook.api.auth import get_current_user, require_roles
from tutorbook.schemas import (
    BookingOut,
    CurrentUser,
    GroupSessionOut,
    JoinGroupRequest,
    MeetingLinkUpdate,
    TutorAssignmentRequest,
    TutorAvailabilityHint,
)
from tutorbook.services.booking_service import BookingService, get_booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/group-sessions", tags=["group-sessions"])


class GroupSessionData(BaseModel):
    """Wrapper for a single group session"""
    data: GroupSessionOut


class GroupSessionListData(BaseModel):
    """Wrapper for a group session listing"""
    data: List[GroupSessionOut]
    metadata: Dict[str, Any]


class JoinData(BaseModel):
    """Wrapper for the booking created by a join"""
    data: BookingOut


class TutorAvailabilityData(BaseModel):
    data: List[TutorAvailabilityHint]


@router.get("", response_model=GroupSessionListData)
async def list_group_sessions(
    status: Optional[str] = Query(None, description="Filter by group status"),
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    groups = await service.list_group_sessions(user, status)
    return {
        "data": [GroupSessionOut.model_validate(g) for g in groups],
        "metadata": {"count": len(groups), "status": status}
    }


@router.get("/{group_id}", response_model=GroupSessionData)
async def get_group_session(
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    group = await service.get_group_session(user, group_id)
    return {"data": GroupSessionOut.model_validate(group)}


@router.post("/{group_id}/join", response_model=JoinData, status_code=201)
async def join_group_session(
    group_id: UUID = Path(..., description="Group session UUID"),
    request: Optional[JoinGroupRequest] = Body(None),
    user: CurrentUser = Depends(require_roles("student")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """
    Join a group session.

    Raises:
        409 ALREADY_JOINED: Student is already a participant
        409 SESSION_FULL: No free seat
    """
    notes = request.notes if request else None
    booking = await service.join_group_session(user, group_id, notes)
    return {"data": BookingOut.model_validate(booking)}


@router.post("/{group_id}/leave", response_model=GroupSessionData)
async def leave_group_session(
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(require_roles("student")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    group = await service.leave_group_session(user, group_id)
    return {"data": GroupSessionOut.model_validate(group)}


@router.post("/{group_id}/assign", response_model=GroupSessionData)
async def assign_tutors(
    request: TutorAssignmentRequest,
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Approve a ready group session by assigning 1-5 tutors in priority order."""
    group = await service.assign_tutors(user, "group", group_id, request.tutor_ids)
    return {"data": GroupSessionOut.model_validate(group)}


@router.get("/{group_id}/tutor-availability", response_model=TutorAvailabilityData)
async def tutor_availability(
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    hints = await service.tutor_availability_hints(user, "group", group_id)
    return {"data": hints}


@router.post("/{group_id}/cancel", response_model=GroupSessionData)
async def cancel_group_session(
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Cancel a group session together with its open bookings."""
    group = await service.cancel_group_session(user, group_id)
    return {"data": GroupSessionOut.model_validate(group)}


@router.delete("/{group_id}", status_code=204)
async def delete_group_session(
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Response:
    await service.delete_group_session(user, group_id)
    return Response(status_code=204)


@router.put("/{group_id}/meeting-link", response_model=GroupSessionData)
async def set_meeting_link(
    update: MeetingLinkUpdate,
    group_id: UUID = Path(..., description="Group session UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    group = await service.set_meeting_link(user, "group", group_id, update.meeting_link)
    return {"data": GroupSessionOut.model_validate(group)}
