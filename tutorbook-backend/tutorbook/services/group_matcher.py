"""
Group Matcher

Finds the open group session for a (service, session type, date, time) slot or
creates one. Creation happens inside a SAVEPOINT: if a concurrent request
created the slot's group first, the unique open_slot key rejects our insert
and the winner's group is returned instead.
"""

import logging
import os
from datetime import date, time
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.errors import PersistenceError
from tutorbook.models.group_session import (
    GroupSession,
    OPEN_GROUP_STATUSES,
    DEFAULT_MIN_STUDENTS,
    DEFAULT_MAX_STUDENTS,
)
from tutorbook.models.tutoring_service import TutoringService

logger = logging.getLogger(__name__)

GROUP_MIN_STUDENTS = int(os.getenv("GROUP_MIN_STUDENTS", str(DEFAULT_MIN_STUDENTS)))
GROUP_MAX_STUDENTS = int(os.getenv("GROUP_MAX_STUDENTS", str(DEFAULT_MAX_STUDENTS)))


async def find_open_group(
    session: AsyncSession,
    service_id: UUID,
    session_type: str,
    preferred_date: date,
    preferred_time: Optional[time] = None,
) -> Optional[GroupSession]:
    """
    Open group for the slot with a free seat, or None.

    An unset time only matches groups whose time is also unset.
    """
    query = (
        select(GroupSession)
        .where(GroupSession.service_id == service_id)
        .where(GroupSession.session_type == session_type)
        .where(GroupSession.preferred_date == preferred_date)
        .where(GroupSession.status.in_(OPEN_GROUP_STATUSES))
        .where(GroupSession.current_count < GroupSession.max_students)
        .order_by(GroupSession.created_at)
        .limit(1)
    )
    if preferred_time is None:
        query = query.where(GroupSession.preferred_time.is_(None))
    else:
        query = query.where(GroupSession.preferred_time == preferred_time)

    result = await session.execute(query)
    return result.scalars().first()


async def resolve_group(
    session: AsyncSession,
    service: TutoringService,
    session_type: str,
    preferred_date: date,
    preferred_time: Optional[time] = None,
) -> UUID:
    """
    Return the id of the group session a group request belongs to.

    Args:
        session: Active unit of work; the new group is flushed, not committed
        service: Requested tutoring service
        session_type: "online" or "face-to-face"
        preferred_date: Requested date
        preferred_time: Requested time, usually unset for group requests

    Returns:
        Id of an existing open group, or of a newly created "forming" group
    """
    existing = await find_open_group(session, service.id, session_type, preferred_date, preferred_time)
    if existing is not None:
        return existing.id

    group = GroupSession(
        service_id=service.id,
        subject=service.name,
        session_type=session_type,
        preferred_date=preferred_date,
        preferred_time=preferred_time,
        status="forming",
        min_students=GROUP_MIN_STUDENTS,
        max_students=GROUP_MAX_STUDENTS,
        current_count=0,
        participants=[],
        tutors=[],
    )

    try:
        async with session.begin_nested():
            session.add(group)
    except IntegrityError:
        # Another request opened this slot between our read and our insert
        winner = await find_open_group(session, service.id, session_type, preferred_date, preferred_time)
        if winner is None:
            raise PersistenceError(
                "Could not create or find a group session for this slot",
                {"service_id": str(service.id), "preferred_date": preferred_date.isoformat()},
            )
        logger.info(f"Lost group creation race for {service.name} on {preferred_date}; joining {winner.id}")
        return winner.id

    logger.info(f"Created group session {group.id} for {service.name} ({session_type}) on {preferred_date}")
    return group.id
