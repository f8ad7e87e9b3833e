"""
Booking Service

Unit-of-work facade over the booking core (intake, group matcher, participant
ledger, quorum evaluator, assignment recorder). Each public method runs in one
transaction, enforces who may act on what, and publishes the committed
changes to the change feed.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorbook.database import AsyncSessionLocal
from tutorbook.errors import (
    NotApprovableStateError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from tutorbook.models.availability import TutorAvailability
from tutorbook.models.booking import Booking, BookingTutor, TERMINAL_BOOKING_STATUSES
from tutorbook.models.group_session import (
    GroupSession,
    GroupSessionParticipant,
    GroupSessionTutor,
    MEMBERSHIP_STATUSES,
)
from tutorbook.schemas import (
    AvailabilitySlotCreate,
    BookingOut,
    BookingSubmission,
    CurrentUser,
    GroupSessionOut,
    TutorAvailabilityHint,
)
from tutorbook.services import assignment, booking_intake, participant_ledger, quorum, tutor_availability
from tutorbook.services.assignment import TargetKind
from tutorbook.services.change_feed import ChangeFeed, get_change_feed

logger = logging.getLogger(__name__)

TERMINAL_GROUP_STATUSES = ("completed", "cancelled")


class BookingService:
    """
    Orchestrates booking operations for one caller at a time.

    The caller's identity is always passed in explicitly; nothing here reads
    ambient session state.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        change_feed: Optional[ChangeFeed] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.change_feed = change_feed or get_change_feed()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Session with an open transaction; store failures become PersistenceError."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"Booking transaction failed: {e}", exc_info=True)
            raise PersistenceError(
                "The booking store is unavailable or rejected the request, please try again",
                {"reason": e.__class__.__name__},
            ) from e

    async def _publish(self, table: str, event_type: str, record: Dict[str, Any]) -> None:
        await self.change_feed.publish(table, event_type, record)

    async def _publish_booking(self, event_type: str, booking: Booking) -> None:
        await self._publish("bookings", event_type, BookingOut.model_validate(booking).model_dump(mode="json"))

    async def _publish_group(self, event_type: str, group: GroupSession) -> None:
        await self._publish(
            "group_sessions", event_type, GroupSessionOut.model_validate(group).model_dump(mode="json")
        )

    @staticmethod
    async def _reload(session: AsyncSession, model, object_id: UUID):
        """Fresh copy of a row with all columns and eager relationships loaded."""
        result = await session.execute(
            select(model).where(model.id == object_id).execution_options(populate_existing=True)
        )
        obj = result.scalars().first()
        if obj is None:
            raise NotFoundError(f"{model.__name__} {object_id} not found", {"id": str(object_id)})
        return obj

    # Visibility

    @staticmethod
    def _can_view_booking(user: CurrentUser, booking: Booking) -> bool:
        if user.is_admin:
            return True
        if user.role == "student":
            return booking.student_id == user.id
        return any(t.tutor_id == user.id for t in booking.tutors)

    @staticmethod
    def _can_view_group(user: CurrentUser, group: GroupSession) -> bool:
        if user.is_admin:
            return True
        if user.role == "student":
            return any(p.student_id == user.id for p in group.participants)
        return any(t.tutor_id == user.id for t in group.tutors)

    # Booking intake and membership

    async def submit_booking(self, user: CurrentUser, submission: BookingSubmission) -> Booking:
        """Submit a one-on-one or group request for the calling student."""
        if user.role != "student":
            raise PermissionDeniedError("Only students can submit booking requests")

        async with self._transaction() as session:
            booking = await booking_intake.submit(session, user.id, submission)
            booking = await self._reload(session, Booking, booking.id)
            group = None
            if booking.group_session_id is not None:
                group = await self._reload(session, GroupSession, booking.group_session_id)

        await self._publish_booking("INSERT", booking)
        if group is not None:
            await self._publish_group("UPDATE", group)
            await self._publish(
                "group_session_participants",
                "INSERT",
                {"group_session_id": str(group.id), "student_id": str(user.id)},
            )
        return booking

    async def join_group_session(self, user: CurrentUser, group_id: UUID, notes: Optional[str] = None) -> Booking:
        """Join a specific group session by id."""
        if user.role != "student":
            raise PermissionDeniedError("Only students can join group sessions")

        async with self._transaction() as session:
            _, booking = await participant_ledger.join(session, group_id, user.id, notes)
            await session.flush()
            booking = await self._reload(session, Booking, booking.id)
            group = await self._reload(session, GroupSession, group_id)

        await self._publish_booking("INSERT", booking)
        await self._publish_group("UPDATE", group)
        await self._publish(
            "group_session_participants",
            "INSERT",
            {"group_session_id": str(group_id), "student_id": str(user.id)},
        )
        return booking

    async def _leave_group(self, session: AsyncSession, group_id: UUID, student_id: UUID) -> GroupSession:
        group = await participant_ledger.leave(session, group_id, student_id)
        await session.execute(
            update(Booking)
            .where(Booking.group_session_id == group_id)
            .where(Booking.student_id == student_id)
            .where(Booking.status.not_in(TERMINAL_BOOKING_STATUSES))
            .values(status="cancelled")
            .execution_options(synchronize_session=False)
        )
        return group

    async def leave_group_session(self, user: CurrentUser, group_id: UUID) -> GroupSession:
        """Leave a group session; the student's linked booking is cancelled."""
        if user.role != "student":
            raise PermissionDeniedError("Only students can leave group sessions")

        async with self._transaction() as session:
            await self._leave_group(session, group_id, user.id)
            group = await self._reload(session, GroupSession, group_id)

        await self._publish_group("UPDATE", group)
        await self._publish(
            "group_session_participants",
            "DELETE",
            {"group_session_id": str(group_id), "student_id": str(user.id)},
        )
        return group

    async def cancel_booking(self, user: CurrentUser, booking_id: UUID) -> Booking:
        """
        Cancel a booking on behalf of its student (or an admin).

        Cancelling a group booking also removes the student from the group.
        """
        group = None
        async with self._transaction() as session:
            booking = await self._reload(session, Booking, booking_id)
            if not user.is_admin and booking.student_id != user.id:
                raise PermissionDeniedError("You can only cancel your own bookings")
            if booking.status in TERMINAL_BOOKING_STATUSES:
                raise NotApprovableStateError(
                    f"Booking is already {booking.status}",
                    {"booking_id": str(booking_id), "status": booking.status},
                )

            if booking.group_session_id is not None:
                membership = await participant_ledger.find_participant(
                    session, booking.group_session_id, booking.student_id
                )
                if membership is not None:
                    await self._leave_group(session, booking.group_session_id, booking.student_id)
                group = await self._reload(session, GroupSession, booking.group_session_id)

            booking = await self._reload(session, Booking, booking_id)
            if booking.status not in TERMINAL_BOOKING_STATUSES:
                booking.status = "cancelled"
                await session.flush()
                booking = await self._reload(session, Booking, booking_id)

        logger.info(f"Booking {booking_id} cancelled by {user.role} {user.id}")
        await self._publish_booking("UPDATE", booking)
        if group is not None:
            await self._publish_group("UPDATE", group)
        return booking

    async def reject_booking(self, user: CurrentUser, booking_id: UUID) -> Booking:
        """
        Admin rejects a pending booking.

        A rejected group booking also takes its student out of the group, so
        the seat no longer counts towards quorum.
        """
        self._require_admin(user)
        group = None
        async with self._transaction() as session:
            booking = await self._reload(session, Booking, booking_id)
            if booking.status != "pending":
                raise NotApprovableStateError(
                    f"Booking is {booking.status}; only pending bookings can be rejected",
                    {"booking_id": str(booking_id), "status": booking.status},
                )
            booking.status = "rejected"
            await session.flush()

            if booking.group_session_id is not None:
                membership = await participant_ledger.find_participant(
                    session, booking.group_session_id, booking.student_id
                )
                if membership is not None:
                    await self._leave_group(session, booking.group_session_id, booking.student_id)
                group = await self._reload(session, GroupSession, booking.group_session_id)

            booking = await self._reload(session, Booking, booking_id)

        logger.info(f"Booking {booking_id} rejected by {user.id}")
        await self._publish_booking("UPDATE", booking)
        if group is not None:
            await self._publish_group("UPDATE", group)
            await self._publish(
                "group_session_participants",
                "DELETE",
                {"group_session_id": str(group.id), "student_id": str(booking.student_id)},
            )
        return booking

    # Tutor assignment

    @staticmethod
    def _require_admin(user: CurrentUser) -> None:
        if not user.is_admin:
            raise PermissionDeniedError("Admin role required")

    async def assign_tutors(
        self,
        user: CurrentUser,
        kind: TargetKind,
        target_id: UUID,
        tutor_ids: Sequence[UUID],
    ):
        """Assign 1-5 tutors in priority order; all bindings commit together or not at all."""
        self._require_admin(user)
        model = Booking if kind == "booking" else GroupSession

        async with self._transaction() as session:
            await assignment.assign(session, kind, target_id, tutor_ids, assigned_by=user.id)
            target = await self._reload(session, model, target_id)

        if kind == "booking":
            await self._publish_booking("UPDATE", target)
        else:
            await self._publish_group("UPDATE", target)
        for binding in target.tutors:
            await self._publish(
                "tutor_assignments",
                "INSERT",
                {
                    "target_kind": kind,
                    "target_id": str(target_id),
                    "tutor_id": str(binding.tutor_id),
                    "assignment_order": binding.assignment_order,
                },
            )
        return target

    async def tutor_availability_hints(
        self, user: CurrentUser, kind: TargetKind, target_id: UUID
    ) -> List[TutorAvailabilityHint]:
        """Advisory availability of every approved tutor for the target's slot."""
        self._require_admin(user)
        async with self._transaction() as session:
            return await assignment.availability_hints(session, kind, target_id)

    # Group session administration

    async def cancel_group_session(self, user: CurrentUser, group_id: UUID) -> GroupSession:
        """Cancel a group session and every open booking linked to it."""
        self._require_admin(user)
        async with self._transaction() as session:
            group = await participant_ledger.lock_group(session, group_id)
            if group.status in TERMINAL_GROUP_STATUSES:
                raise NotApprovableStateError(
                    f"Group session is already {group.status}",
                    {"group_session_id": str(group_id), "status": group.status},
                )
            group.status = "cancelled"
            await session.execute(
                update(Booking)
                .where(Booking.group_session_id == group_id)
                .where(Booking.status.not_in(TERMINAL_BOOKING_STATUSES))
                .values(status="cancelled")
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            group = await self._reload(session, GroupSession, group_id)

        logger.info(f"Group session {group_id} cancelled by {user.id}")
        await self._publish_group("UPDATE", group)
        return group

    async def delete_group_session(self, user: CurrentUser, group_id: UUID) -> None:
        """Delete a group session with its participants, bookings and tutor bindings."""
        self._require_admin(user)
        async with self._transaction() as session:
            group = await participant_ledger.lock_group(session, group_id)
            await session.delete(group)

        logger.info(f"Group session {group_id} deleted by {user.id}")
        await self._publish("group_sessions", "DELETE", {"id": str(group_id)})

    async def set_meeting_link(self, user: CurrentUser, kind: TargetKind, target_id: UUID, meeting_link: str):
        self._require_admin(user)
        model = Booking if kind == "booking" else GroupSession
        async with self._transaction() as session:
            target = await self._reload(session, model, target_id)
            target.meeting_link = meeting_link
            await session.flush()
            target = await self._reload(session, model, target_id)

        if kind == "booking":
            await self._publish_booking("UPDATE", target)
        else:
            await self._publish_group("UPDATE", target)
        return target

    # Reads

    async def get_booking(self, user: CurrentUser, booking_id: UUID) -> Booking:
        async with self._transaction() as session:
            booking = await self._reload(session, Booking, booking_id)
        if not self._can_view_booking(user, booking):
            raise PermissionDeniedError("You cannot view this booking")
        return booking

    async def list_bookings(self, user: CurrentUser, status: Optional[str] = None) -> List[Booking]:
        """Students see their own bookings, tutors the ones assigned to them, admins all."""
        query = select(Booking).order_by(Booking.created_at.desc())
        if user.role == "student":
            query = query.where(Booking.student_id == user.id)
        elif user.role == "tutor":
            query = query.where(
                Booking.id.in_(select(BookingTutor.booking_id).where(BookingTutor.tutor_id == user.id))
            )
        if status:
            query = query.where(Booking.status == status)

        async with self._transaction() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_group_session(self, user: CurrentUser, group_id: UUID) -> GroupSession:
        async with self._transaction() as session:
            group = await self._reload(session, GroupSession, group_id)
        if not self._can_view_group(user, group):
            raise PermissionDeniedError("You cannot view this group session")
        return group

    async def list_group_sessions(self, user: CurrentUser, status: Optional[str] = None) -> List[GroupSession]:
        """Students see groups they joined, tutors the ones assigned to them, admins all."""
        query = select(GroupSession).order_by(GroupSession.created_at.desc())
        if user.role == "student":
            query = query.where(
                GroupSession.id.in_(
                    select(GroupSessionParticipant.group_session_id)
                    .where(GroupSessionParticipant.student_id == user.id)
                )
            )
        elif user.role == "tutor":
            query = query.where(
                GroupSession.id.in_(
                    select(GroupSessionTutor.group_session_id).where(GroupSessionTutor.tutor_id == user.id)
                )
            )
        if status:
            query = query.where(GroupSession.status == status)

        async with self._transaction() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # Tutor availability

    async def add_availability(self, user: CurrentUser, slot: AvailabilitySlotCreate) -> TutorAvailability:
        if user.role != "tutor":
            raise PermissionDeniedError("Only tutors can declare availability")
        async with self._transaction() as session:
            return await tutor_availability.add_slot(session, user, slot)

    async def list_availability(self, user: CurrentUser, tutor_id: UUID) -> List[TutorAvailability]:
        if tutor_id != user.id and not user.is_admin:
            raise PermissionDeniedError("You can only view your own availability")
        async with self._transaction() as session:
            return await tutor_availability.list_slots(session, tutor_id)

    async def remove_availability(self, user: CurrentUser, slot_id: UUID) -> None:
        async with self._transaction() as session:
            await tutor_availability.remove_slot(session, user, slot_id)

    # Maintenance

    async def reconcile_groups(self) -> Dict[str, Any]:
        """
        Recount participants of every forming/ready/full group and reapply the
        quorum transitions.

        Returns:
            Summary with groups_checked, counts_corrected, status_changes, duration_ms
        """
        start_time = time.time()
        corrected = 0
        status_changes = 0
        changed_groups: List[GroupSession] = []

        async with self._transaction() as session:
            result = await session.execute(
                select(GroupSession.id).where(GroupSession.status.in_(MEMBERSHIP_STATUSES))
            )
            group_ids = list(result.scalars().all())

            for group_id in group_ids:
                group = await participant_ledger.lock_group(session, group_id)
                stored_count, stored_status = group.current_count, group.status
                await quorum.evaluate(session, group)
                if group.current_count != stored_count:
                    corrected += 1
                    logger.warning(
                        f"Group {group_id} count drifted: stored {stored_count}, actual {group.current_count}"
                    )
                if group.status != stored_status:
                    status_changes += 1
                if group.current_count != stored_count or group.status != stored_status:
                    changed_groups.append(await self._reload(session, GroupSession, group_id))

        for group in changed_groups:
            await self._publish_group("UPDATE", group)

        duration_ms = (time.time() - start_time) * 1000
        return {
            "groups_checked": len(group_ids),
            "counts_corrected": corrected,
            "status_changes": status_changes,
            "duration_ms": round(duration_ms, 2),
        }

    async def complete_past_sessions(self, today: Optional[date] = None) -> Dict[str, int]:
        """Mark assigned bookings and approved group sessions dated before today as completed."""
        today = today or date.today()

        async with self._transaction() as session:
            bookings = await session.execute(
                update(Booking)
                .where(Booking.preferred_date < today)
                .where(Booking.status.in_(("assigned", "approved")))
                .values(status="completed")
                .execution_options(synchronize_session=False)
            )
            groups = await session.execute(
                update(GroupSession)
                .where(GroupSession.preferred_date < today)
                .where(GroupSession.status == "approved")
                .values(status="completed")
                .execution_options(synchronize_session=False)
            )

        summary = {"bookings_completed": bookings.rowcount, "group_sessions_completed": groups.rowcount}
        logger.info(
            f"Completed {summary['bookings_completed']} bookings and "
            f"{summary['group_sessions_completed']} group sessions dated before {today}"
        )
        return summary


# Global service instance
_service: Optional[BookingService] = None


def get_booking_service() -> BookingService:
    """Get or create global BookingService instance."""
    global _service
    if _service is None:
        _service = BookingService()
    return _service
