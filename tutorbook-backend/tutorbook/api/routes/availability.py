"""Tutor weekly availability endpoints"""
import logging
from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Response
from pydantic import BaseModel

from tutorbook.api.auth import get_current_user, require_roles
from tutorbook.schemas import AvailabilitySlotCreate, AvailabilitySlotOut, CurrentUser
from tutorbook.services.booking_service import BookingService, get_booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/availability", tags=["availability"])


class AvailabilitySlotData(BaseModel):
    data: AvailabilitySlotOut


class AvailabilityListData(BaseModel):
    data: List[AvailabilitySlotOut]


@router.get("/me", response_model=AvailabilityListData)
async def my_availability(
    user: CurrentUser = Depends(require_roles("tutor")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    slots = await service.list_availability(user, user.id)
    return {"data": [AvailabilitySlotOut.model_validate(s) for s in slots]}


@router.get("/tutors/{tutor_id}", response_model=AvailabilityListData)
async def tutor_availability(
    tutor_id: UUID = Path(..., description="Tutor UUID"),
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    slots = await service.list_availability(user, tutor_id)
    return {"data": [AvailabilitySlotOut.model_validate(s) for s in slots]}


@router.post("", response_model=AvailabilitySlotData, status_code=201)
async def add_availability(
    slot: AvailabilitySlotCreate,
    user: CurrentUser = Depends(require_roles("tutor")),
    service: BookingService = Depends(get_booking_service),
) -> Dict[str, Any]:
    """Declare a weekly window (day_of_week 0=Sunday .. 6=Saturday)."""
    window = await service.add_availability(user, slot)
    return {"data": AvailabilitySlotOut.model_validate(window)}


@router.delete("/{slot_id}", status_code=204)
async def remove_availability(
    slot_id: UUID = Path(..., description="Availability slot UUID"),
    user: CurrentUser = Depends(require_roles("tutor", "admin")),
    service: BookingService = Depends(get_booking_service),
) -> Response:
    await service.remove_availability(user, slot_id)
    return Response(status_code=204)
