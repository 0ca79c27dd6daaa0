"""Bridges Redis pub/sub to this process's feeds and WebSocket clients.

Writers in any API process publish on ``ws:couple:{coupleId}`` (feed changes) and
``ws:user:{uid}`` (personal notifications). Every process runs one bridge that
re-runs the changed feeds on its local hub and forwards personal events to the
user's connections.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import redis.asyncio as aioredis
import structlog

from pairly.realtime.channels import COUPLE_CHANNEL_PREFIX, USER_CHANNEL_PREFIX, Feed
from pairly.realtime.feeds import FeedHub, hub
from pairly.realtime.manager import ConnectionManager, manager

logger = structlog.get_logger()

PATTERNS = (f"{COUPLE_CHANNEL_PREFIX}*", f"{USER_CHANNEL_PREFIX}*")


class PubSubBridge:
    """Subscribes to Redis pub/sub and fans messages out locally."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        feed_hub: FeedHub | None = None,
        connections: ConnectionManager | None = None,
    ) -> None:
        self.redis = redis_client
        self.hub = feed_hub or hub
        self.connections = connections or manager
        self._running = False

    async def start(self) -> None:
        """Start listening to Redis pub/sub channels."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(*PATTERNS)
        logger.info("pubsub_bridge_started", patterns=list(PATTERNS))

        try:
            while self._running:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                try:
                    await self.handle_message(message)
                except Exception:
                    logger.warning("pubsub_message_failed", channel=message.get("channel"), exc_info=True)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False

    async def handle_message(self, message: dict[str, Any]) -> int:
        """Dispatch one pub/sub message. Returns how many local deliveries it caused."""
        redis_channel = message.get("channel", "")
        if isinstance(redis_channel, bytes):
            redis_channel = redis_channel.decode()

        try:
            data = message.get("data", b"")
            if isinstance(data, bytes):
                data = data.decode()
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("pubsub_invalid_message", channel=redis_channel)
            return 0

        # ── Couple feed changes ──
        if redis_channel.startswith(COUPLE_CHANNEL_PREFIX):
            couple_id = redis_channel[len(COUPLE_CHANNEL_PREFIX):]
            delivered = 0
            for name in payload.get("feeds", []):
                try:
                    feed = Feed(name)
                except ValueError:
                    logger.warning("pubsub_unknown_feed", channel=redis_channel, feed=name)
                    continue
                delivered += await self.hub.publish_change(feed, couple_id)
            return delivered

        # ── Per-user messages ──
        if redis_channel.startswith(USER_CHANNEL_PREFIX):
            user_id = redis_channel[len(USER_CHANNEL_PREFIX):]
            event_type = payload.get("event", "notification")
            event_data = payload.get("data", payload)
            sent = await self.connections.send_to_user_direct(user_id, {
                "type": event_type,
                "payload": event_data,
            })
            if sent > 0:
                logger.debug("user_event_sent", user_id=user_id, event_type=event_type, recipients=sent)
            return sent

        return 0
