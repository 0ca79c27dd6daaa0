"""WebSocket connection manager.

Tracks active WebSocket connections, which user and couple each belongs to, and
the feed subscriptions each connection holds on the hub. Every hub subscription is
released when its connection goes away.

The couple a connection belongs to is re-read on every subscribe, so a user who
pairs after connecting can subscribe without reconnecting. While a connection
holds couple feeds it also watches the couple itself; when the couple is
dissolved those feeds are released and the client is told.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import WebSocket

from pairly.database import session_scope
from pairly.profiles.service import get_user
from pairly.realtime.channels import Feed
from pairly.realtime.feeds import FeedHub, FeedUnavailable, hub
from pairly.realtime.publisher import dumps

logger = structlog.get_logger()

CoupleLookup = Callable[[str], Awaitable[str | None]]


async def lookup_couple_id(user_id: str) -> str | None:
    """Current couple of a user, or None if unpaired or unknown."""
    async with session_scope() as db:
        user = await get_user(db, user_id)
    return user.couple_id if user else None


@dataclass
class ClientConnection:
    """Represents a single WebSocket client."""

    websocket: WebSocket
    user_id: str
    couple_id: str | None
    unsubscribers: dict[Feed, Callable[[], None]] = field(default_factory=dict)
    couple_watch: Callable[[], None] | None = None
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Manages all active WebSocket connections.

    Safe for asyncio via the single-threaded event loop.
    """

    def __init__(
        self,
        feed_hub: FeedHub | None = None,
        max_connections_per_user: int = 5,
        couple_lookup: CoupleLookup = lookup_couple_id,
    ) -> None:
        self._hub = feed_hub or hub
        self._lookup_couple = couple_lookup
        self.max_connections_per_user = max_connections_per_user
        self._connections: dict[str, ClientConnection] = {}  # conn_id -> client
        self._user_connections: dict[str, set[str]] = defaultdict(set)  # user_id -> {conn_ids}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def user_connection_count(self, user_id: str) -> int:
        return len(self._user_connections.get(user_id, set()))

    def couple_id_of(self, conn_id: str) -> str | None:
        client = self._connections.get(conn_id)
        return client.couple_id if client else None

    async def connect(
        self,
        websocket: WebSocket,
        conn_id: str,
        user_id: str,
        couple_id: str | None,
    ) -> bool:
        """Accept a new WebSocket connection. Returns False if the user is at the cap."""
        if self.user_connection_count(user_id) >= self.max_connections_per_user:
            await websocket.close(code=4008, reason="Too many connections")
            logger.warning("ws_connection_limit", user_id=user_id)
            return False

        await websocket.accept()
        self._connections[conn_id] = ClientConnection(
            websocket=websocket,
            user_id=user_id,
            couple_id=couple_id,
        )
        self._user_connections[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=user_id)
        return True

    async def disconnect(self, conn_id: str) -> None:
        """Remove a WebSocket connection and release its feed subscriptions."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        self._release_feeds(client)

        self._user_connections[client.user_id].discard(conn_id)
        if not self._user_connections[client.user_id]:
            del self._user_connections[client.user_id]

        logger.info("ws_disconnected", conn_id=conn_id, user_id=client.user_id)

    def _release_feeds(self, client: ClientConnection) -> list[Feed]:
        """Drop every hub subscription of a connection, the couple watch included."""
        released = list(client.unsubscribers)
        for unsubscribe in client.unsubscribers.values():
            unsubscribe()
        client.unsubscribers.clear()
        if client.couple_watch is not None:
            client.couple_watch()
            client.couple_watch = None
        return released

    async def _refresh_couple(self, client: ClientConnection) -> str | None:
        couple_id = await self._lookup_couple(client.user_id)
        if couple_id != client.couple_id:
            self._release_feeds(client)
            logger.info("ws_couple_changed", user_id=client.user_id, couple_id=couple_id)
            client.couple_id = couple_id
        return couple_id

    async def _watch_couple(self, client: ClientConnection, couple_id: str) -> None:
        async def on_couple(data: Any) -> None:
            if data is not None or client.couple_id != couple_id:
                return
            released = self._release_feeds(client)
            client.couple_id = None
            logger.info("ws_couple_dissolved", user_id=client.user_id, couple_id=couple_id)
            for feed_name in released:
                await self._send(client, {"type": "unsubscribed", "feed": feed_name.value})

        client.couple_watch = await self._hub.subscribe(Feed.COUPLE, couple_id, on_couple)

    async def subscribe(self, conn_id: str, feed: str) -> bool:
        """Subscribe a connection to one feed of its current couple.

        Returns False for an unknown feed or an unpaired user. Raises
        ``FeedUnavailable`` if the feed cannot be read right now.
        """
        client = self._connections.get(conn_id)
        if client is None:
            return False

        try:
            feed_name = Feed(feed)
        except ValueError:
            return False

        couple_id = await self._refresh_couple(client)
        if couple_id is None:
            return False

        if feed_name in client.unsubscribers:
            return True

        if client.couple_watch is None:
            await self._watch_couple(client, couple_id)
            if client.couple_id is None:
                self._release_feeds(client)
                return False

        async def deliver(data: Any) -> None:
            await self._send(client, {"type": "snapshot", "feed": feed_name.value, "data": data})

        try:
            client.unsubscribers[feed_name] = await self._hub.subscribe(feed_name, couple_id, deliver)
        except FeedUnavailable:
            self._drop_idle_watch(client)
            raise
        logger.debug("ws_subscribed", conn_id=conn_id, feed=feed_name.value)
        return True

    def _drop_idle_watch(self, client: ClientConnection) -> None:
        if not client.unsubscribers and client.couple_watch is not None:
            client.couple_watch()
            client.couple_watch = None

    async def unsubscribe(self, conn_id: str, feed: str) -> bool:
        """Unsubscribe a connection from a feed."""
        client = self._connections.get(conn_id)
        if client is None:
            return False

        try:
            feed_name = Feed(feed)
        except ValueError:
            return False

        unsubscribe = client.unsubscribers.pop(feed_name, None)
        if unsubscribe is not None:
            unsubscribe()
        self._drop_idle_watch(client)
        return True

    async def _send(self, client: ClientConnection, message: dict[str, Any]) -> None:
        await client.websocket.send_text(dumps(message))
        client.messages_sent += 1

    async def send_to_user_direct(self, user_id: str, message: dict[str, Any]) -> int:
        """Send a message to every connection of a user, regardless of feeds."""
        conn_ids = list(self._user_connections.get(user_id, set()))
        sent = 0

        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                continue
            try:
                await self._send(client, message)
                sent += 1
            except Exception:
                await self.disconnect(conn_id)

        return sent

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "unique_users": len(self._user_connections),
            "feed_subscriptions": sum(len(c.unsubscribers) for c in self._connections.values()),
        }


# Global singleton
manager = ConnectionManager()
