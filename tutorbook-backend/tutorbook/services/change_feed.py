"""
Change Feed

Publishes committed row changes to Redis pub/sub, one channel per table, so
UI clients can refresh their views. Publication is best effort: a Redis
outage is logged and never fails the booking operation that caused it.
"""

import json
import logging
import os
from typing import Any, AsyncIterator, Callable, Dict, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from tutorbook.database import get_redis

logger = logging.getLogger(__name__)

CHANGE_FEED_PREFIX = os.getenv("CHANGE_FEED_PREFIX", "tutorbook")

TABLES = ("bookings", "group_sessions", "group_session_participants", "tutor_assignments")
EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")


def matches(record: Dict[str, Any], filters: Optional[Dict[str, str]]) -> bool:
    """Equality filter on stringified record fields."""
    if not filters:
        return True
    return all(str(record.get(key)) == value for key, value in filters.items())


class ChangeFeed:
    """Redis-backed publish/subscribe for table change events"""

    def __init__(
        self,
        redis_getter: Callable[[], Optional[aioredis.Redis]] = get_redis,
        prefix: str = CHANGE_FEED_PREFIX,
    ):
        self._redis_getter = redis_getter
        self.prefix = prefix

    def channel(self, table: str) -> str:
        return f"{self.prefix}:{table}"

    async def publish(self, table: str, event_type: str, record: Dict[str, Any]) -> bool:
        """
        Publish one change event.

        Returns:
            True if handed to Redis, False if Redis is not configured or failed
        """
        redis = self._redis_getter()
        if redis is None:
            logger.debug(f"Change feed disabled, dropping {event_type} on {table}")
            return False

        message = json.dumps({"table": table, "type": event_type, "record": record}, default=str)
        try:
            await redis.publish(self.channel(table), message)
        except RedisError as e:
            logger.warning(f"Could not publish {event_type} on {table}: {e}")
            return False
        return True

    async def subscribe(
        self, table: str, filters: Optional[Dict[str, str]] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield change events for a table whose record matches the filters."""
        redis = self._redis_getter()
        if redis is None:
            raise RuntimeError("Change feed requires Redis; call init_redis() first")

        pubsub = redis.pubsub()
        await pubsub.subscribe(self.channel(table))
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                event = json.loads(message["data"])
                if matches(event.get("record", {}), filters):
                    yield event
        finally:
            await pubsub.unsubscribe(self.channel(table))
            await pubsub.aclose()


# Global change feed instance
_change_feed: Optional[ChangeFeed] = None


def get_change_feed() -> ChangeFeed:
    """Get or create global ChangeFeed instance."""
    global _change_feed
    if _change_feed is None:
        _change_feed = ChangeFeed()
    return _change_feed
