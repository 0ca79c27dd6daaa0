"""WebSocket endpoint with JWT authentication and feed multiplexing."""

import json
import uuid

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from pairly.auth.jwt import verify_token
from pairly.database import session_scope
from pairly.profiles.service import get_user
from pairly.realtime.channels import Feed
from pairly.realtime.feeds import FeedUnavailable
from pairly.realtime.manager import manager

logger = structlog.get_logger()

router = APIRouter()


def subscribe_error(feed: str) -> str:
    try:
        Feed(feed)
    except ValueError:
        return f"Invalid feed: {feed}"
    return "You are not connected to a partner"


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Single WebSocket endpoint with JWT authentication and feed multiplexing.

    Protocol:
        Client -> Server:
            {"action": "subscribe", "feed": "notes"}
            {"action": "unsubscribe", "feed": "notes"}
            {"action": "ping"}

        Server -> Client:
            {"type": "snapshot", "feed": "notes", "data": [...]}
            {"type": "notification", "payload": {...}}
            {"type": "pong"}
            {"type": "error", "message": "..."}
            {"type": "subscribed", "feed": "notes"}
            {"type": "unsubscribed", "feed": "notes"}
    """
    try:
        payload = verify_token(token, expected_type="access")
        user_id = str(payload["sub"])
    except Exception as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return

    async with session_scope() as db:
        user = await get_user(db, user_id)
    if user is None:
        await websocket.close(code=4001, reason="Profile not found")
        return

    conn_id = str(uuid.uuid4())
    if not await manager.connect(websocket, conn_id, user_id, user.couple_id):
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = msg.get("action")

            if action == "subscribe":
                feed = msg.get("feed", "")
                try:
                    subscribed = await manager.subscribe(conn_id, feed)
                except FeedUnavailable:
                    logger.warning("ws_feed_unavailable", conn_id=conn_id, feed=feed, exc_info=True)
                    await websocket.send_json({"type": "error", "message": "Feed temporarily unavailable"})
                    continue
                if subscribed:
                    await websocket.send_json({"type": "subscribed", "feed": feed})
                else:
                    await websocket.send_json({"type": "error", "message": subscribe_error(feed)})

            elif action == "unsubscribe":
                feed = msg.get("feed", "")
                await manager.unsubscribe(conn_id, feed)
                await websocket.send_json({"type": "unsubscribed", "feed": feed})

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Unknown action: {action}",
                })

    except WebSocketDisconnect:
        await manager.disconnect(conn_id)
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
        await manager.disconnect(conn_id)
