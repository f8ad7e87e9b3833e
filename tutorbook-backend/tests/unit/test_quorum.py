"""
Unit tests for the quorum transition table
"""

import pytest

from tutorbook.services.quorum import next_status


class TestMembershipTransitions:
    """Counts drive forming/ready/full"""

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_forming_below_quorum_stays_forming(self, count):
        assert next_status("forming", count, 3, 40) == "forming"

    @pytest.mark.parametrize("count", [3, 20, 39])
    def test_forming_reaching_quorum_becomes_ready(self, count):
        assert next_status("forming", count, 3, 40) == "ready"

    def test_forming_at_max_becomes_full(self):
        assert next_status("forming", 40, 3, 40) == "full"

    def test_ready_at_max_becomes_full(self):
        assert next_status("ready", 40, 3, 40) == "full"

    def test_ready_dropping_below_quorum_returns_to_forming(self):
        """A cancellation can take a ready group back to forming"""
        assert next_status("ready", 2, 3, 40) == "forming"

    def test_full_losing_a_member_reopens_as_ready(self):
        assert next_status("full", 39, 3, 40) == "ready"

    def test_small_group_thresholds(self):
        assert next_status("forming", 1, 1, 2) == "ready"
        assert next_status("ready", 2, 1, 2) == "full"


class TestAdminControlledStatuses:
    """Membership changes never override admin-controlled statuses"""

    @pytest.mark.parametrize("status", ["assigned", "approved", "completed", "cancelled"])
    @pytest.mark.parametrize("count", [0, 2, 3, 40])
    def test_status_is_unchanged(self, status, count):
        assert next_status(status, count, 3, 40) == status
