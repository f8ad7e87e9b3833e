"""
Booking API Endpoints

Students submit and cancel session requests; admins review them, assign
tutors in priority order and attach meeting links.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel

from tutorbook.api.auth import get_current_user, require_roles
from tutorbook.schemas import (
    BookingOut,
    BookingSubmission,
    CurrentUser,
    MeetingLinkUpdate,
    TutorAssignmentRequest,
    TutorAvailabilityHint,
)
from tutorbook.services.booking_service import BookingService, get_booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


class BookingData(BaseModel):
    """Wrapper for a single booking"""
    data: BookingOut


class BookingListData(BaseModel):
    """Wrapper for a booking listing"""
    data: List[BookingOut]
    metadata: Dict[str, Any]


class TutorAvailabilityData(BaseModel):
    """Wrapper for tutor availability hints"""
    data: List[TutorAvailabilityHint]


@router.post("", response_model=BookingData, status_code=201)
async def submit_booking(
    submission: BookingSubmission,
    user: CurrentUser = Depends(require_roles("student")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """
    Submit a one-on-one or group session request.

    Group requests are matched to the open group session for the same
    service, session type, date and time, or open a new one.

    Raises:
        400: Missing or invalid field for the class type
        409: Already joined / group full
    """
    booking = await service.submit_booking(user, submission)
    return {"data": BookingOut.model_validate(booking)}


@router.get("", response_model=BookingListData)
async def list_bookings(
    status: Optional[str] = Query(None, description="Filter by booking status"),
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Bookings visible to the caller, newest first."""
    bookings = await service.list_bookings(user, status)
    return {
        "data": [BookingOut.model_validate(b) for b in bookings],
        "metadata": {"count": len(bookings), "status": status}
    }


@router.get("/{booking_id}", response_model=BookingData)
async def get_booking(
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    booking = await service.get_booking(user, booking_id)
    return {"data": BookingOut.model_validate(booking)}


@router.post("/{booking_id}/cancel", response_model=BookingData)
async def cancel_booking(
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_roles("student", "admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Cancel a booking; for group bookings the student also leaves the group."""
    booking = await service.cancel_booking(user, booking_id)
    return {"data": BookingOut.model_validate(booking)}


@router.post("/{booking_id}/reject", response_model=BookingData)
async def reject_booking(
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    booking = await service.reject_booking(user, booking_id)
    return {"data": BookingOut.model_validate(booking)}


@router.post("/{booking_id}/assign", response_model=BookingData)
async def assign_tutors(
    request: TutorAssignmentRequest,
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """
    Assign 1-5 tutors to a pending one-on-one booking.

    The first tutor becomes the primary tutor; the booking moves to
    "assigned". Either every tutor is recorded or none is.
    """
    booking = await service.assign_tutors(user, "booking", booking_id, request.tutor_ids)
    return {"data": BookingOut.model_validate(booking)}


@router.get("/{booking_id}/tutor-availability", response_model=TutorAvailabilityData)
async def tutor_availability(
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Approved tutors flagged by availability at the booking's requested slot."""
    hints = await service.tutor_availability_hints(user, "booking", booking_id)
    return {"data": hints}


@router.put("/{booking_id}/meeting-link", response_model=BookingData)
async def set_meeting_link(
    update: MeetingLinkUpdate,
    booking_id: UUID = Path(..., description="Booking UUID"),
    user: CurrentUser = Depends(require_roles("admin")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    booking = await service.set_meeting_link(user, "booking", booking_id, update.meeting_link)
    return {"data": BookingOut.model_validate(booking)}
