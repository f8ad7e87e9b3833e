"""
Unit tests for the booking error taxonomy
"""

import pytest

from tutorbook.errors import (
    BookingError,
    CapacityExceededError,
    DuplicateMembershipError,
    NotApprovableStateError,
    PersistenceError,
    ValidationError,
)


class TestErrorEnvelope:

    def test_validation_error_names_field(self):
        error = ValidationError("curriculum", "Please select your curriculum", {"hint": "IB"})
        assert error.to_dict() == {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Please select your curriculum",
                "details": {"field": "curriculum", "hint": "IB"},
            }
        }
        assert error.status_code == 400

    @pytest.mark.parametrize("error_class, code", [
        (DuplicateMembershipError, "ALREADY_JOINED"),
        (CapacityExceededError, "SESSION_FULL"),
        (NotApprovableStateError, "INVALID_STATE"),
    ])
    def test_distinct_conflict_codes(self, error_class, code):
        error = error_class("conflict")
        assert error.code == code
        assert error.status_code == 409
        assert isinstance(error, BookingError)

    def test_only_persistence_errors_are_retriable(self):
        assert PersistenceError("down").retriable is True
        assert ValidationError("x", "bad").retriable is False
        assert CapacityExceededError("full").retriable is False
