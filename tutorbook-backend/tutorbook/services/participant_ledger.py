"""
Participant Ledger

Records a student's membership in a group session exactly once, together with
the student's linked group booking, and removes it again when the student
leaves. Every mutation is followed by the Quorum Evaluator.
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.errors import (
    CapacityExceededError,
    DuplicateMembershipError,
    NotApprovableStateError,
    NotFoundError,
)
from tutorbook.models.booking import Booking
from tutorbook.models.group_session import (
    GroupSession,
    GroupSessionParticipant,
    MEMBERSHIP_STATUSES,
    OPEN_GROUP_STATUSES,
)
from tutorbook.services import quorum

logger = logging.getLogger(__name__)

# Statuses in which a student may still leave a group
LEAVABLE_STATUSES = ("forming", "ready", "full", "assigned", "approved")


def is_unique_violation(exc: IntegrityError) -> bool:
    """True for duplicate-key errors on PostgreSQL (23505) and SQLite."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == "23505":
        return True
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate key" in message


async def lock_group(session: AsyncSession, group_id: UUID) -> GroupSession:
    """Load a group session, locking its row where the backend supports it."""
    result = await session.execute(
        select(GroupSession)
        .where(GroupSession.id == group_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    group = result.scalars().first()
    if group is None:
        raise NotFoundError(f"Group session {group_id} not found", {"group_session_id": str(group_id)})
    return group


async def find_participant(
    session: AsyncSession, group_id: UUID, student_id: UUID
) -> Optional[GroupSessionParticipant]:
    result = await session.execute(
        select(GroupSessionParticipant)
        .where(GroupSessionParticipant.group_session_id == group_id)
        .where(GroupSessionParticipant.student_id == student_id)
    )
    return result.scalars().first()


async def join(
    session: AsyncSession,
    group_id: UUID,
    student_id: UUID,
    notes: Optional[str] = None,
) -> Tuple[GroupSessionParticipant, Booking]:
    """
    Add a student to a group session and create the linked group booking.

    Raises:
        NotFoundError: No such group session
        DuplicateMembershipError: Student already joined this group
        CapacityExceededError: Group has no free seat
        NotApprovableStateError: Group is no longer taking students
    """
    group = await lock_group(session, group_id)

    if await find_participant(session, group_id, student_id) is not None:
        raise DuplicateMembershipError(
            "You have already joined this group session",
            {"group_session_id": str(group_id)},
        )

    if group.status not in MEMBERSHIP_STATUSES:
        raise NotApprovableStateError(
            f"Group session is {group.status} and no longer accepts students",
            {"group_session_id": str(group_id), "status": group.status},
        )

    # Capacity is checked against the live row count in this transaction
    count = await quorum.live_count(session, group_id)
    if group.status not in OPEN_GROUP_STATUSES or count >= group.max_students:
        raise CapacityExceededError(
            "This group session is full, please pick another date",
            {"group_session_id": str(group_id), "max_students": group.max_students},
        )

    participant = GroupSessionParticipant(
        group_session_id=group.id,
        student_id=student_id,
        notes=notes,
    )
    try:
        async with session.begin_nested():
            group.participants.append(participant)
    except IntegrityError as e:
        if is_unique_violation(e):
            raise DuplicateMembershipError(
                "You have already joined this group session",
                {"group_session_id": str(group_id)},
            ) from e
        raise

    booking = Booking(
        student_id=student_id,
        service_id=group.service_id,
        subject=group.subject,
        session_type=group.session_type,
        delivery_mode="online" if group.session_type == "online" else "in_person",
        class_type="group",
        preferred_date=group.preferred_date,
        preferred_time=group.preferred_time,
        notes=notes,
        status="pending",
        group_session_id=group.id,
        tutors=[],
        subjects=[],
    )
    session.add(booking)

    status = await quorum.evaluate(session, group)
    logger.info(
        f"Student {student_id} joined group {group.id} "
        f"({group.current_count}/{group.max_students}, {status})"
    )
    return participant, booking


async def leave(session: AsyncSession, group_id: UUID, student_id: UUID) -> GroupSession:
    """
    Remove a student from a group session and re-evaluate quorum.

    Raises:
        NotFoundError: No such group, or the student is not a participant
        NotApprovableStateError: Group is completed or cancelled
    """
    group = await lock_group(session, group_id)
    if group.status not in LEAVABLE_STATUSES:
        raise NotApprovableStateError(
            f"Cannot leave a {group.status} group session",
            {"group_session_id": str(group_id), "status": group.status},
        )

    participant = await find_participant(session, group_id, student_id)
    if participant is None:
        raise NotFoundError(
            "You are not a participant of this group session",
            {"group_session_id": str(group_id)},
        )

    group.participants.remove(participant)
    await session.flush()

    status = await quorum.evaluate(session, group)
    logger.info(
        f"Student {student_id} left group {group.id} "
        f"({group.current_count}/{group.max_students}, {status})"
    )
    return group
