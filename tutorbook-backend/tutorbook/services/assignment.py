"""
Assignment Recorder

Binds an ordered list of tutors to a one-on-one booking or a ready group
session and approves it, and computes advisory availability hints for the
admin picking tutors.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Literal, Sequence, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.errors import NotApprovableStateError, NotFoundError, ValidationError
from tutorbook.models.booking import Booking, BookingTutor
from tutorbook.models.group_session import GroupSession, GroupSessionTutor
from tutorbook.models.tutor import Tutor
from tutorbook.schemas import TutorAvailabilityHint

logger = logging.getLogger(__name__)

TargetKind = Literal["booking", "group"]
Target = Union[Booking, GroupSession]

MAX_TUTORS_PER_SESSION = 5


def validate_tutor_ids(tutor_ids: Sequence[UUID]) -> List[UUID]:
    """Between 1 and MAX_TUTORS_PER_SESSION distinct tutors, order preserved."""
    if not tutor_ids:
        raise ValidationError("tutor_ids", "Please select at least 1 tutor to assign")
    if len(tutor_ids) > MAX_TUTORS_PER_SESSION:
        raise ValidationError(
            "tutor_ids",
            f"Cannot assign more than {MAX_TUTORS_PER_SESSION} tutors to a session",
            {"maximum": MAX_TUTORS_PER_SESSION, "received": len(tutor_ids)},
        )
    if len(set(tutor_ids)) != len(tutor_ids):
        raise ValidationError("tutor_ids", "Each tutor can only be assigned once")
    return list(tutor_ids)


def day_of_week(value: date) -> int:
    """Weekday in the availability convention (0=Sunday .. 6=Saturday)."""
    return (value.weekday() + 1) % 7


async def load_target(session: AsyncSession, kind: TargetKind, target_id: UUID, lock: bool = False) -> Target:
    model = Booking if kind == "booking" else GroupSession
    query = select(model).where(model.id == target_id).execution_options(populate_existing=True)
    if lock:
        query = query.with_for_update()
    result = await session.execute(query)
    target = result.scalars().first()
    if target is None:
        label = "Booking" if kind == "booking" else "Group session"
        raise NotFoundError(f"{label} {target_id} not found", {"target_id": str(target_id)})
    return target


def _check_approvable(kind: TargetKind, target: Target) -> None:
    if kind == "booking":
        if target.class_type != "one-on-one":
            raise NotApprovableStateError(
                "Group bookings are assigned through their group session",
                {"booking_id": str(target.id), "group_session_id": str(target.group_session_id)},
            )
        if target.status != "pending":
            raise NotApprovableStateError(
                f"Booking is {target.status}; only pending bookings can be assigned",
                {"booking_id": str(target.id), "status": target.status},
            )
    elif target.status != "ready":
        raise NotApprovableStateError(
            f"Group session is {target.status}; only ready group sessions can be approved",
            {"group_session_id": str(target.id), "status": target.status},
        )


async def _check_tutors_exist(session: AsyncSession, tutor_ids: List[UUID]) -> None:
    result = await session.execute(select(Tutor.id).where(Tutor.id.in_(tutor_ids)))
    found = set(result.scalars().all())
    missing = [str(t) for t in tutor_ids if t not in found]
    if missing:
        raise ValidationError("tutor_ids", "Unknown tutor(s)", {"unknown_tutor_ids": missing})


async def assign(
    session: AsyncSession,
    kind: TargetKind,
    target_id: UUID,
    tutor_ids: Sequence[UUID],
    assigned_by: UUID,
) -> Target:
    """
    Record tutors for a booking or group session in the given order.

    The booking becomes "assigned", the group session "approved" (and its
    pending member bookings "approved"). All rows are flushed in the caller's
    transaction; if anything fails the caller's rollback leaves the target
    untouched.

    Raises:
        ValidationError: 0 or more than 5 tutors, duplicates, unknown tutors
        NotFoundError: No such target
        NotApprovableStateError: Target is not pending (booking) / ready (group)
    """
    tutor_ids = validate_tutor_ids(tutor_ids)
    target = await load_target(session, kind, target_id, lock=True)
    _check_approvable(kind, target)
    await _check_tutors_exist(session, tutor_ids)

    now = datetime.now(timezone.utc)
    if kind == "booking":
        for order, tutor_id in enumerate(tutor_ids, start=1):
            target.tutors.append(
                BookingTutor(tutor_id=tutor_id, assignment_order=order, assigned_by=assigned_by)
            )
        target.status = "assigned"
        target.tutor_assigned_at = now
    else:
        for order, tutor_id in enumerate(tutor_ids, start=1):
            target.tutors.append(
                GroupSessionTutor(tutor_id=tutor_id, assignment_order=order, assigned_by=assigned_by)
            )
        target.status = "approved"
        await session.execute(
            update(Booking)
            .where(Booking.group_session_id == target.id)
            .where(Booking.status == "pending")
            .values(status="approved", tutor_assigned_at=now)
            .execution_options(synchronize_session=False)
        )

    await session.flush()
    logger.info(
        f"Assigned {len(tutor_ids)} tutor(s) to {kind} {target.id} by {assigned_by}; "
        f"status {target.status}, primary tutor {tutor_ids[0]}"
    )
    return target


async def availability_hints(
    session: AsyncSession, kind: TargetKind, target_id: UUID
) -> List[TutorAvailabilityHint]:
    """
    Approved tutors flagged by whether an active weekly window on the
    requested weekday satisfies start <= requested time < end.

    Advisory only; when the target has no time yet every tutor is flagged
    available. Available tutors are listed first.
    """
    target = await load_target(session, kind, target_id)
    weekday = day_of_week(target.preferred_date)
    requested_time = target.preferred_time

    result = await session.execute(
        select(Tutor).where(Tutor.status == "approved").order_by(Tutor.name)
    )
    hints = []
    for tutor in result.scalars().all():
        if requested_time is None:
            available = True
        else:
            available = any(
                window.day_of_week == weekday and window.covers(requested_time)
                for window in tutor.availability
            )
        hints.append(
            TutorAvailabilityHint(
                tutor_id=tutor.id,
                name=tutor.name,
                email=tutor.email,
                is_available=available,
            )
        )

    hints.sort(key=lambda hint: not hint.is_available)
    return hints
