"""Client-side read cache over feed snapshots.

The durable store is the source of truth. The cache holds the last snapshot per
feed and lets the UI layer show its own writes before the round trip completes
(an optimistic overlay). Every snapshot callback replaces the stored snapshot and
drops that feed's overlay, so local state can never drift from the server's.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pairly.realtime.channels import Feed
from pairly.realtime.feeds import FeedHub


class SnapshotCache:
    """Last-known snapshot per feed plus pending optimistic changes."""

    def __init__(self) -> None:
        self._snapshots: dict[Feed, Any] = {}
        self._pending_records: dict[Feed, list[dict[str, Any]]] = {}
        self._pending_patches: dict[Feed, dict[str, Any]] = {}

    def apply_snapshot(self, feed: Feed, data: Any) -> None:
        """Store an authoritative snapshot and reconcile the overlay."""
        self._snapshots[feed] = data
        self._pending_records.pop(feed, None)
        self._pending_patches.pop(feed, None)

    def callback_for(self, feed: Feed) -> Callable[[Any], None]:
        return lambda data: self.apply_snapshot(feed, data)

    async def attach(self, feed_hub: FeedHub, feed: Feed, couple_id: str, limit: int | None = None) -> Callable[[], None]:
        """Subscribe the cache to a feed. Returns the hub's unsubscribe callable."""
        return await feed_hub.subscribe(feed, couple_id, self.callback_for(feed), limit)

    def add_optimistic(self, feed: Feed, record: dict[str, Any]) -> None:
        """Show a locally written record in a list feed until the next snapshot."""
        self._pending_records.setdefault(feed, []).append(record)

    def patch_optimistic(self, feed: Feed, fields: dict[str, Any]) -> None:
        """Overlay fields on a document feed (couple, pet) until the next snapshot."""
        self._pending_patches.setdefault(feed, {}).update(fields)

    def has_pending(self, feed: Feed) -> bool:
        return bool(self._pending_records.get(feed) or self._pending_patches.get(feed))

    def snapshot(self, feed: Feed) -> Any:
        """The last authoritative snapshot, without the overlay."""
        return self._snapshots.get(feed)

    def view(self, feed: Feed) -> Any:
        """Snapshot with the optimistic overlay applied."""
        data = self._snapshots.get(feed)
        patch = self._pending_patches.get(feed)
        if patch:
            return {**(data or {}), **patch}

        pending = self._pending_records.get(feed)
        if not pending:
            return data
        existing = data if isinstance(data, list) else []
        known = {item.get("id") for item in existing if isinstance(item, dict)}
        # Newest first, matching snapshot ordering
        overlay = [r for r in reversed(pending) if r.get("id") is None or r.get("id") not in known]
        return overlay + existing
