"""
Booking Intake

Validates a student's session request per class type and persists it. A
one-on-one request becomes a pending booking with its ordered subjects; a
group request is routed through the Group Matcher and Participant Ledger.
"""

import logging
import os
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorbook.errors import ValidationError
from tutorbook.models.booking import Booking, BookingSubject, session_type_for
from tutorbook.models.tutoring_service import TutoringService
from tutorbook.schemas import BookingSubmission
from tutorbook.services import group_matcher, participant_ledger

logger = logging.getLogger(__name__)

MIN_SESSION_MINUTES = int(os.getenv("MIN_SESSION_MINUTES", "30"))


def normalize_submission(submission: BookingSubmission) -> BookingSubmission:
    """
    Check the fields required for the submission's class type.

    One-on-one requests need a time, a curriculum, a duration of at least
    MIN_SESSION_MINUTES and, when in person, the student's confirmation that
    they can travel. Group requests are always online and drop the
    one-on-one-only fields.

    Returns:
        Normalized copy of the submission

    Raises:
        ValidationError: naming the first offending field
    """
    if submission.preferred_date is None:
        raise ValidationError("preferred_date", "Please select a date for your session")

    if submission.class_type == "group":
        return submission.model_copy(update={
            "delivery_mode": "online",
            "curriculum": None,
            "duration_minutes": None,
            "can_travel": False,
            "additional_subjects": [],
        })

    if submission.preferred_time is None:
        raise ValidationError("preferred_time", "Please select a time for your session")
    if not submission.curriculum or not submission.curriculum.strip():
        raise ValidationError("curriculum", "Please select your curriculum")
    if submission.duration_minutes is None or submission.duration_minutes < MIN_SESSION_MINUTES:
        raise ValidationError(
            "duration_minutes",
            f"Please specify a session duration of at least {MIN_SESSION_MINUTES} minutes",
            {"minimum": MIN_SESSION_MINUTES},
        )
    if submission.delivery_mode == "in_person" and not submission.can_travel:
        raise ValidationError(
            "can_travel",
            "Please confirm you can travel to the meeting location for in-person sessions",
        )
    for extra in submission.additional_subjects:
        if extra.duration_minutes is not None and extra.duration_minutes < MIN_SESSION_MINUTES:
            raise ValidationError(
                "additional_subjects",
                f"Each additional subject needs at least {MIN_SESSION_MINUTES} minutes",
                {"service_id": str(extra.service_id), "minimum": MIN_SESSION_MINUTES},
            )
    return submission


async def load_service(session: AsyncSession, service_id: UUID, field: str = "service_id") -> TutoringService:
    """Active tutoring service by id, or a ValidationError on the given field."""
    service = await session.get(TutoringService, service_id)
    if service is None or not service.is_active:
        raise ValidationError(field, "Unknown or inactive tutoring service", {"service_id": str(service_id)})
    return service


async def submit(session: AsyncSession, student_id: UUID, submission: BookingSubmission) -> Booking:
    """
    Persist a student's request as a pending booking.

    Args:
        session: Active unit of work (flushed, not committed)
        student_id: Requesting student
        submission: Raw request

    Returns:
        The created Booking; for group requests it references its group session

    Raises:
        ValidationError, DuplicateMembershipError, CapacityExceededError
    """
    request = normalize_submission(submission)
    service = await load_service(session, request.service_id)

    if not service.supports(request.delivery_mode):
        if request.class_type == "group":
            message = f"Group sessions are online only and {service.name} is not offered online"
        else:
            message = f"{service.name} is not offered {request.delivery_mode.replace('_', '-')}"
        raise ValidationError("delivery_mode", message, {"service_id": str(service.id)})

    session_type = session_type_for(request.delivery_mode)

    if request.class_type == "group":
        group_id = await group_matcher.resolve_group(
            session, service, session_type, request.preferred_date, request.preferred_time
        )
        _, booking = await participant_ledger.join(session, group_id, student_id, request.notes)
        return booking

    subjects: List[BookingSubject] = [
        BookingSubject(service_id=service.id, subject_order=1, duration_minutes=request.duration_minutes)
    ]
    seen = {service.id}
    for index, extra in enumerate(request.additional_subjects, start=2):
        if extra.service_id in seen:
            raise ValidationError(
                "additional_subjects",
                "Each subject can only be requested once",
                {"service_id": str(extra.service_id)},
            )
        seen.add(extra.service_id)
        await load_service(session, extra.service_id, field="additional_subjects")
        subjects.append(
            BookingSubject(
                service_id=extra.service_id,
                subject_order=index,
                duration_minutes=extra.duration_minutes,
            )
        )

    booking = Booking(
        student_id=student_id,
        service_id=service.id,
        subject=service.name,
        session_type=session_type,
        delivery_mode=request.delivery_mode,
        class_type="one-on-one",
        preferred_date=request.preferred_date,
        preferred_time=request.preferred_time,
        notes=request.notes,
        curriculum=request.curriculum.strip(),
        duration_minutes=request.duration_minutes,
        status="pending",
        tutors=[],
        subjects=subjects,
    )
    session.add(booking)
    await session.flush()

    logger.info(
        f"One-on-one booking {booking.id} submitted by {student_id} for {service.name} "
        f"on {request.preferred_date} {request.preferred_time}"
    )
    return booking
