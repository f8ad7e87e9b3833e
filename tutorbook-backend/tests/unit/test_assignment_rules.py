"""
Unit tests for assignment preconditions and weekday mapping
"""

import uuid
from datetime import date, time

import pytest

from tutorbook.errors import NotApprovableStateError, ValidationError
from tutorbook.models.availability import TutorAvailability
from tutorbook.models.booking import Booking
from tutorbook.models.group_session import GroupSession
from tutorbook.services.assignment import (
    MAX_TUTORS_PER_SESSION,
    _check_approvable,
    day_of_week,
    validate_tutor_ids,
)


class TestTutorListValidation:

    def test_empty_list_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_tutor_ids([])
        assert exc.value.field == "tutor_ids"

    def test_six_tutors_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_tutor_ids([uuid.uuid4() for _ in range(6)])
        assert exc.value.details["maximum"] == MAX_TUTORS_PER_SESSION

    def test_duplicates_rejected(self):
        tutor = uuid.uuid4()
        with pytest.raises(ValidationError):
            validate_tutor_ids([tutor, tutor])

    @pytest.mark.parametrize("size", [1, 3, 5])
    def test_order_is_preserved(self, size):
        ids = [uuid.uuid4() for _ in range(size)]
        assert validate_tutor_ids(ids) == ids


class TestDayOfWeek:
    """0=Sunday .. 6=Saturday"""

    def test_sunday_is_zero(self):
        assert day_of_week(date(2025, 3, 2)) == 0

    def test_saturday_is_six(self):
        assert day_of_week(date(2025, 3, 1)) == 6

    def test_monday_is_one(self):
        assert day_of_week(date(2025, 3, 3)) == 1


class TestApprovableStates:

    def test_pending_one_on_one_booking_is_approvable(self):
        _check_approvable("booking", Booking(class_type="one-on-one", status="pending"))

    @pytest.mark.parametrize("status", ["assigned", "approved", "completed", "cancelled", "rejected"])
    def test_non_pending_booking_rejected(self, status):
        with pytest.raises(NotApprovableStateError):
            _check_approvable("booking", Booking(class_type="one-on-one", status=status))

    def test_group_booking_must_go_through_its_group(self):
        booking = Booking(class_type="group", status="pending", group_session_id=uuid.uuid4())
        with pytest.raises(NotApprovableStateError):
            _check_approvable("booking", booking)

    def test_ready_group_is_approvable(self):
        _check_approvable("group", GroupSession(status="ready"))

    @pytest.mark.parametrize("status", ["forming", "full", "approved", "cancelled"])
    def test_group_not_ready_rejected(self, status):
        with pytest.raises(NotApprovableStateError):
            _check_approvable("group", GroupSession(status=status))


class TestAvailabilityWindow:
    """start <= requested time < end on active windows"""

    def window(self, active=True):
        return TutorAvailability(day_of_week=6, start_time=time(9), end_time=time(17), is_active=active)

    def test_start_is_inclusive(self):
        assert self.window().covers(time(9))

    def test_end_is_exclusive(self):
        assert not self.window().covers(time(17))

    def test_inactive_window_never_covers(self):
        assert not self.window(active=False).covers(time(12))
