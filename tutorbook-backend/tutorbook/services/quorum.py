"""
Quorum Evaluator

Recomputes a group session's member count from its participant rows and moves
its status between forming, ready and full. Admin-controlled statuses
(assigned, approved, completed, cancelled) are never changed here.
"""

import logging
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.models.group_session import (
    GroupSession,
    GroupSessionParticipant,
    MEMBERSHIP_STATUSES,
    OPEN_GROUP_STATUSES,
)

logger = logging.getLogger(__name__)


def next_status(status: str, count: int, min_students: int, max_students: int) -> str:
    """
    Status a group should have for a given participant count.

    | current status       | count                      | next    |
    |----------------------|----------------------------|---------|
    | forming/ready/full   | count >= max_students      | full    |
    | forming/ready/full   | min <= count < max         | ready   |
    | forming/ready/full   | count < min_students       | forming |
    | anything else        | any                        | same    |
    """
    if status not in MEMBERSHIP_STATUSES:
        return status
    if count >= max_students:
        return "full"
    if count >= min_students:
        return "ready"
    return "forming"


async def live_count(session: AsyncSession, group_id) -> int:
    """Count participant rows for a group session."""
    result = await session.execute(
        select(func.count())
        .select_from(GroupSessionParticipant)
        .where(GroupSessionParticipant.group_session_id == group_id)
    )
    return result.scalar_one()


async def _slot_taken_by_other(session: AsyncSession, group: GroupSession) -> bool:
    result = await session.execute(
        select(GroupSession.id)
        .where(GroupSession.open_slot == group.slot_key())
        .where(GroupSession.id != group.id)
    )
    return result.first() is not None


async def evaluate(session: AsyncSession, group: GroupSession) -> str:
    """
    Reconcile current_count with the participant rows and apply the status
    transition. Flushes the group and returns its resulting status.

    A full group that loses members only reopens when no other open group
    has taken its slot in the meantime; otherwise it stays closed.
    """
    count = await live_count(session, group.id)
    previous_status = group.status
    new_status = next_status(previous_status, count, group.min_students, group.max_students)

    if (
        previous_status == "full"
        and new_status in OPEN_GROUP_STATUSES
        and await _slot_taken_by_other(session, group)
    ):
        logger.info(
            f"Group {group.id} dropped to {count}/{group.max_students} but its slot "
            "is held by another open group; keeping it closed"
        )
        new_status = "full"

    if group.current_count != count:
        logger.debug(f"Group {group.id} count {group.current_count} -> {count}")
    group.current_count = count

    if new_status != previous_status:
        logger.info(
            f"Group {group.id} status {previous_status} -> {new_status} "
            f"({count} students, min {group.min_students}, max {group.max_students})"
        )
        group.status = new_status

    await session.flush()
    return group.status
