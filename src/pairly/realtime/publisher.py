"""Change announcements for the real-time layer.

Writers call these after their transaction commits. With Redis configured the
announcement goes over pub/sub so every API process sees it (see ``bridge.py``);
without Redis it is delivered to this process directly.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any

from pairly.realtime.channels import Feed, couple_channel, user_channel

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def dumps(payload: Any) -> str:
    """JSON-encode a payload that may contain datetimes."""
    return json.dumps(payload, default=_json_default)


async def publish_couple_change(redis: Any | None, couple_id: str | None, *feeds: Feed) -> None:
    """Announce that one or more feeds of a couple changed."""
    if not couple_id or not feeds:
        return

    if redis is None:
        from pairly.realtime.feeds import hub

        for feed in feeds:
            await hub.publish_change(feed, couple_id)
        return

    payload = {"event": "change", "feeds": [feed.value for feed in feeds]}
    try:
        await redis.publish(couple_channel(couple_id), dumps(payload))
    except Exception:
        logger.warning("Failed to publish change for couple %s", couple_id, exc_info=True)


async def publish_user_event(redis: Any | None, user_id: str, event: str, data: dict[str, Any]) -> None:
    """Push an event to every connection of one user (best-effort)."""
    if redis is None:
        from pairly.realtime.manager import manager

        await manager.send_to_user_direct(user_id, {"type": event, "payload": data})
        return

    payload = {"event": event, "data": data}
    try:
        await redis.publish(user_channel(user_id), dumps(payload))
    except Exception:
        logger.warning("Failed to push %s to user %s", event, user_id, exc_info=True)
