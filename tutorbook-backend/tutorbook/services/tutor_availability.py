"""Tutor weekly availability windows"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.errors import NotFoundError, PermissionDeniedError, ValidationError
from tutorbook.models.availability import TutorAvailability
from tutorbook.models.tutor import Tutor
from tutorbook.schemas import AvailabilitySlotCreate, CurrentUser

logger = logging.getLogger(__name__)


async def add_slot(session: AsyncSession, user: CurrentUser, slot: AvailabilitySlotCreate) -> TutorAvailability:
    if slot.start_time >= slot.end_time:
        raise ValidationError("end_time", "End time must be after start time")
    if await session.get(Tutor, user.id) is None:
        raise NotFoundError("No tutor profile exists for this account", {"tutor_id": str(user.id)})

    window = TutorAvailability(
        tutor_id=user.id,
        day_of_week=slot.day_of_week,
        start_time=slot.start_time,
        end_time=slot.end_time,
        is_active=True,
    )
    session.add(window)
    await session.flush()
    logger.info(f"Tutor {user.id} added availability day={slot.day_of_week} {slot.start_time}-{slot.end_time}")
    return window


async def list_slots(session: AsyncSession, tutor_id: UUID, active_only: bool = True) -> List[TutorAvailability]:
    query = (
        select(TutorAvailability)
        .where(TutorAvailability.tutor_id == tutor_id)
        .order_by(TutorAvailability.day_of_week, TutorAvailability.start_time)
    )
    if active_only:
        query = query.where(TutorAvailability.is_active.is_(True))
    result = await session.execute(query)
    return list(result.scalars().all())


async def remove_slot(session: AsyncSession, user: CurrentUser, slot_id: UUID) -> None:
    window = await session.get(TutorAvailability, slot_id)
    if window is None:
        raise NotFoundError(f"Availability slot {slot_id} not found", {"slot_id": str(slot_id)})
    if window.tutor_id != user.id and not user.is_admin:
        raise PermissionDeniedError("You can only remove your own availability")
    await session.delete(window)
    await session.flush()
    logger.info(f"Removed availability slot {slot_id} of tutor {window.tutor_id}")
