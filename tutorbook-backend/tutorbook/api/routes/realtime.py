"""
Realtime change feed over WebSocket

Clients subscribe to one table and may narrow the stream with equality
filters passed as query parameters, e.g.
``/api/v1/realtime/bookings?token=...&student_id=<uuid>``.
"""
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status
from jwt import PyJWTError
from redis.exceptions import RedisError

from tutorbook.api.auth import decode_token, user_from_claims
from tutorbook.services.change_feed import TABLES, get_change_feed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/realtime", tags=["realtime"])


@router.websocket("/{table}")
async def subscribe(websocket: WebSocket, table: str):
    token = websocket.query_params.get("token")
    if table not in TABLES or not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        user = user_from_claims(decode_token(token))
    except (PyJWTError, HTTPException):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    filters = {k: v for k, v in websocket.query_params.items() if k != "token"}
    if user.role == "student" and table in ("bookings", "group_session_participants"):
        filters["student_id"] = str(user.id)

    await websocket.accept()
    logger.info(f"{user.role} {user.id} subscribed to {table} with filters {filters}")

    try:
        async for event in get_change_feed().subscribe(table, filters):
            await websocket.send_json(event)
    except WebSocketDisconnect:
        logger.info(f"{user.role} {user.id} unsubscribed from {table}")
    except (RedisError, RuntimeError) as e:
        logger.error(f"Change feed for {table} unavailable: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
