"""
Unit tests for the Redis change feed
"""

import json
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from tutorbook.services.change_feed import ChangeFeed, matches


class TestFilters:

    def test_no_filters_match_everything(self):
        assert matches({"status": "pending"}, None)
        assert matches({"status": "pending"}, {})

    def test_equality_on_string_form(self):
        record = {"student_id": "abc", "current_count": 3}
        assert matches(record, {"student_id": "abc", "current_count": "3"})
        assert not matches(record, {"student_id": "xyz"})

    def test_missing_field_does_not_match(self):
        assert not matches({"status": "ready"}, {"group_session_id": "g1"})


class TestPublish:

    async def test_publishes_json_on_table_channel(self):
        redis = AsyncMock()
        feed = ChangeFeed(redis_getter=lambda: redis, prefix="tb")

        published = await feed.publish("bookings", "INSERT", {"id": "b1", "status": "pending"})

        assert published is True
        channel, message = redis.publish.await_args.args
        assert channel == "tb:bookings"
        assert json.loads(message) == {
            "table": "bookings",
            "type": "INSERT",
            "record": {"id": "b1", "status": "pending"},
        }

    async def test_without_redis_nothing_is_published(self):
        feed = ChangeFeed(redis_getter=lambda: None)
        assert await feed.publish("bookings", "INSERT", {"id": "b1"}) is False

    async def test_redis_failure_is_swallowed(self):
        redis = AsyncMock()
        redis.publish.side_effect = RedisConnectionError("down")
        feed = ChangeFeed(redis_getter=lambda: redis)

        assert await feed.publish("group_sessions", "UPDATE", {"id": "g1"}) is False


class TestSubscribe:

    async def test_yields_only_matching_messages(self):
        async def listen():
            yield {"type": "subscribe", "data": 1}
            yield {"type": "message", "data": json.dumps(
                {"table": "bookings", "type": "INSERT", "record": {"student_id": "a"}})}
            yield {"type": "message", "data": json.dumps(
                {"table": "bookings", "type": "UPDATE", "record": {"student_id": "b"}})}

        pubsub = MagicMock()
        pubsub.subscribe = AsyncMock()
        pubsub.unsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        pubsub.listen = MagicMock(return_value=listen())
        redis = MagicMock()
        redis.pubsub.return_value = pubsub
        feed = ChangeFeed(redis_getter=lambda: redis, prefix="tb")

        events = [event async for event in feed.subscribe("bookings", {"student_id": "b"})]

        assert [e["type"] for e in events] == ["UPDATE"]
        pubsub.subscribe.assert_awaited_once_with("tb:bookings")
        pubsub.unsubscribe.assert_awaited_once_with("tb:bookings")
        pubsub.aclose.assert_awaited_once()
