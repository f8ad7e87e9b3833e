"""
Integration tests for concurrent group requests

At most one open group may exist per (service, session type, date, time)
slot, no matter how requests interleave.
"""
import asyncio

import pytest
from sqlalchemy import select

from tutorbook.models.group_session import GroupSession
from tutorbook.services import group_matcher

pytestmark = pytest.mark.integration


async def groups_for(session_factory, service_id):
    async with session_factory() as session:
        result = await session.execute(select(GroupSession).where(GroupSession.service_id == service_id))
        return list(result.scalars().all())


class TestConcurrentJoin:

    @pytest.mark.parametrize("students", [2, 8])
    async def test_simultaneous_requests_share_one_group(
        self, booking_service, catalog, new_student, group_request, session_factory, students
    ):
        bookings = await asyncio.gather(*[
            booking_service.submit_booking(new_student(), group_request(catalog.math.id))
            for _ in range(students)
        ])

        assert len({b.group_session_id for b in bookings}) == 1
        groups = await groups_for(session_factory, catalog.math.id)
        assert len(groups) == 1
        assert groups[0].current_count == students
        assert groups[0].status == ("ready" if students >= 3 else "forming")

    async def test_simultaneous_requests_on_two_slots(
        self, booking_service, catalog, new_student, group_request, session_factory
    ):
        requests = [group_request(catalog.math.id), group_request(catalog.physics.id)] * 3
        await asyncio.gather(*[booking_service.submit_booking(new_student(), r) for r in requests])

        for service in (catalog.math, catalog.physics):
            groups = await groups_for(session_factory, service.id)
            assert len(groups) == 1
            assert groups[0].current_count == 3


class TestStaleReadUpsert:
    """The matcher misses an existing group and must fall back to it"""

    async def test_insert_conflict_returns_existing_group(
        self, booking_service, catalog, new_student, group_request, session_factory, monkeypatch
    ):
        first = await booking_service.submit_booking(new_student(), group_request(catalog.math.id))

        real_find = group_matcher.find_open_group
        calls = []

        async def stale_find(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                return None
            return await real_find(*args, **kwargs)

        monkeypatch.setattr(group_matcher, "find_open_group", stale_find)

        second = await booking_service.submit_booking(new_student(), group_request(catalog.math.id))

        assert len(calls) == 2
        assert second.group_session_id == first.group_session_id
        groups = await groups_for(session_factory, catalog.math.id)
        assert len(groups) == 1
        assert groups[0].current_count == 2
