"""
Integration tests for tutor assignment

Ordering, all-or-nothing persistence and availability hints.
"""
import uuid
from datetime import time

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import IntegrityError

from tutorbook.errors import (
    NotApprovableStateError,
    PersistenceError,
    ValidationError,
)
from tutorbook.models.booking import Booking, BookingTutor
from tutorbook.models.group_session import GroupSessionTutor

pytestmark = pytest.mark.integration


async def binding_count(session_factory, model=BookingTutor):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestOneOnOneAssignment:

    async def test_three_tutors_get_orders_one_two_three(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request, redis_mock
    ):
        booking = await booking_service.submit_booking(new_student(), one_on_one_request(catalog.math.id))
        ordered = [tutors.y.id, tutors.x.id, tutors.z.id]

        assigned = await booking_service.assign_tutors(admin, "booking", booking.id, ordered)

        assert assigned.status == "assigned"
        assert [t.tutor_id for t in assigned.tutors] == ordered
        assert [t.assignment_order for t in assigned.tutors] == [1, 2, 3]
        assert assigned.tutor_id == tutors.y.id
        assert assigned.tutor_assigned_at is not None
        channels = [call.args[0] for call in redis_mock.publish.await_args_list]
        assert channels.count("test:tutor_assignments") == 3

    @pytest.mark.parametrize("size", [0, 6])
    async def test_zero_or_six_tutors_rejected_before_any_write(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request,
        session_factory, size
    ):
        booking = await booking_service.submit_booking(new_student(), one_on_one_request(catalog.math.id))
        roster = [tutors.x, tutors.y, tutors.z, tutors.t4, tutors.t5, tutors.t6]

        with pytest.raises(ValidationError) as exc:
            await booking_service.assign_tutors(admin, "booking", booking.id, [t.id for t in roster[:size]])

        assert exc.value.field == "tutor_ids"
        assert await binding_count(session_factory) == 0
        async with session_factory() as session:
            assert (await session.get(Booking, booking.id)).status == "pending"

    async def test_unknown_tutor_rejected(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request, session_factory
    ):
        booking = await booking_service.submit_booking(new_student(), one_on_one_request(catalog.math.id))

        with pytest.raises(ValidationError) as exc:
            await booking_service.assign_tutors(admin, "booking", booking.id, [tutors.x.id, uuid.uuid4()])

        assert "unknown_tutor_ids" in exc.value.details
        assert await binding_count(session_factory) == 0

    async def test_assigning_twice_is_invalid_state(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request
    ):
        booking = await booking_service.submit_booking(new_student(), one_on_one_request(catalog.math.id))
        await booking_service.assign_tutors(admin, "booking", booking.id, [tutors.x.id])

        with pytest.raises(NotApprovableStateError):
            await booking_service.assign_tutors(admin, "booking", booking.id, [tutors.y.id])

    async def test_group_booking_cannot_be_assigned_directly(
        self, booking_service, catalog, tutors, admin, new_student, group_request
    ):
        booking = await booking_service.submit_booking(new_student(), group_request(catalog.math.id))

        with pytest.raises(NotApprovableStateError):
            await booking_service.assign_tutors(admin, "booking", booking.id, [tutors.x.id])


class TestAllOrNothing:
    """A failing third binding leaves no trace"""

    async def test_third_insert_failure_rolls_back_everything(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request, session_factory
    ):
        booking = await booking_service.submit_booking(new_student(), one_on_one_request(catalog.math.id))
        inserts = []

        def fail_on_third(mapper, connection, target):
            inserts.append(target.tutor_id)
            if len(inserts) == 3:
                raise IntegrityError("INSERT INTO booking_tutors", {}, Exception("simulated failure"))

        event.listen(BookingTutor, "before_insert", fail_on_third)
        try:
            with pytest.raises(PersistenceError) as exc:
                await booking_service.assign_tutors(
                    admin, "booking", booking.id, [tutors.x.id, tutors.y.id, tutors.z.id]
                )
        finally:
            event.remove(BookingTutor, "before_insert", fail_on_third)

        assert exc.value.retriable is True
        assert len(inserts) == 3
        assert await binding_count(session_factory) == 0
        async with session_factory() as session:
            unchanged = await session.get(Booking, booking.id)
        assert unchanged.status == "pending"
        assert unchanged.tutor_assigned_at is None

    async def test_group_approval_rolls_back_on_failure(
        self, booking_service, catalog, tutors, admin, new_student, group_request, session_factory
    ):
        bookings = [
            await booking_service.submit_booking(new_student(), group_request(catalog.math.id))
            for _ in range(3)
        ]
        group_id = bookings[0].group_session_id

        def fail_on_second(mapper, connection, target):
            if target.assignment_order == 2:
                raise IntegrityError("INSERT INTO group_session_tutors", {}, Exception("simulated failure"))

        event.listen(GroupSessionTutor, "before_insert", fail_on_second)
        try:
            with pytest.raises(PersistenceError):
                await booking_service.assign_tutors(admin, "group", group_id, [tutors.x.id, tutors.y.id])
        finally:
            event.remove(GroupSessionTutor, "before_insert", fail_on_second)

        assert await binding_count(session_factory, GroupSessionTutor) == 0
        group = await booking_service.get_group_session(admin, group_id)
        assert group.status == "ready"
        async with session_factory() as session:
            statuses = await session.execute(select(Booking.status).where(Booking.group_session_id == group_id))
            assert set(statuses.scalars().all()) == {"pending"}


class TestGroupApprovalPreconditions:

    async def test_forming_group_cannot_be_approved(
        self, booking_service, catalog, tutors, admin, new_student, group_request
    ):
        booking = await booking_service.submit_booking(new_student(), group_request(catalog.math.id))

        with pytest.raises(NotApprovableStateError) as exc:
            await booking_service.assign_tutors(admin, "group", booking.group_session_id, [tutors.x.id])
        assert exc.value.details["status"] == "forming"


class TestAvailabilityHints:
    """Saturday 2025-03-01: x works 09-17, y 14-18, z Mondays only"""

    async def test_flags_tutors_working_at_requested_time(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request
    ):
        booking = await booking_service.submit_booking(
            new_student(), one_on_one_request(catalog.math.id, preferred_time=time(15, 0))
        )

        hints = await booking_service.tutor_availability_hints(admin, "booking", booking.id)

        available = {h.tutor_id for h in hints if h.is_available}
        assert available == {tutors.x.id, tutors.y.id}
        assert len(hints) == 6
        assert [h.is_available for h in hints][:2] == [True, True]

    async def test_window_end_is_exclusive(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request
    ):
        booking = await booking_service.submit_booking(
            new_student(), one_on_one_request(catalog.math.id, preferred_time=time(17, 0))
        )

        hints = await booking_service.tutor_availability_hints(admin, "booking", booking.id)

        assert {h.tutor_id for h in hints if h.is_available} == {tutors.y.id}

    async def test_untimed_group_flags_everyone(
        self, booking_service, catalog, tutors, admin, new_student, group_request
    ):
        booking = await booking_service.submit_booking(new_student(), group_request(catalog.math.id))

        hints = await booking_service.tutor_availability_hints(admin, "group", booking.group_session_id)

        assert all(h.is_available for h in hints)

    async def test_unavailable_tutor_can_still_be_assigned(
        self, booking_service, catalog, tutors, admin, new_student, one_on_one_request
    ):
        booking = await booking_service.submit_booking(new_student(), one_on_one_request(catalog.math.id))

        assigned = await booking_service.assign_tutors(admin, "booking", booking.id, [tutors.z.id])

        assert assigned.tutor_id == tutors.z.id
