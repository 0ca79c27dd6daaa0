"""In-process standing queries over couple-scoped data.

A subscriber registers a callback for one feed of one couple. It receives the
full current result immediately and again after every announced change, never a
diff. Each change re-runs the query once per distinct page size, no matter how
many subscribers are listening.
"""

from __future__ import annotations

import inspect
import itertools
from collections import defaultdict
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pairly.config import get_settings
from pairly.couples.couple_service import get_couple_row
from pairly.database import session_scope
from pairly.realtime.channels import Feed
from pairly.results import ServiceResult
from pairly.sharing import dates_service, gift_service, mood_service, notes_service

logger = structlog.get_logger()

FeedCallback = Callable[[Any], Awaitable[None] | None]
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

MOODS_FEED_LIMIT = 10


def default_limit(feed: Feed) -> int | None:
    """Page size used when a subscriber does not ask for one; None means unbounded."""
    if feed in (Feed.NOTES, Feed.GIFTS):
        return get_settings().feed_page_size
    if feed == Feed.MOODS:
        return MOODS_FEED_LIMIT
    return None


class FeedUnavailable(Exception):
    """A feed query failed; subscribers keep their last snapshot."""


def _unwrap(result: ServiceResult, key: str) -> Any:
    if not result.success:
        raise FeedUnavailable(result.error)
    return result[key]


async def query_feed(db: AsyncSession, feed: Feed, couple_id: str, limit: int | None = None) -> Any:
    """Run the standing query behind a feed and return its current result.

    Raises ``FeedUnavailable`` instead of returning a partial or empty result.
    """
    limit = limit or default_limit(feed)
    match feed:
        case Feed.COUPLE:
            couple = await get_couple_row(db, couple_id)
            return couple.to_document() if couple else None
        case Feed.PET:
            couple = await get_couple_row(db, couple_id)
            return couple.pet if couple else None
        case Feed.NOTES:
            return _unwrap(await notes_service.get_notes(db, couple_id, limit=limit), "notes")
        case Feed.MOODS:
            return _unwrap(await mood_service.get_couple_mood_history(db, couple_id, limit=limit), "moods")
        case Feed.GIFTS:
            return _unwrap(await gift_service.get_gifts(db, couple_id, limit=limit), "gifts")
        case Feed.SPECIAL_DATES:
            anniversary = _unwrap(await dates_service.get_anniversary_date(db, couple_id), "date")
            dates = await dates_service.list_important_dates(db, couple_id)
            return {"anniversary": anniversary, "dates": dates}


@dataclass
class _Subscription:
    feed: Feed
    couple_id: str
    callback: FeedCallback
    limit: int | None


class FeedHub:
    """Registry of live feed subscriptions for this process."""

    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory
        self._subscriptions: dict[tuple[Feed, str], dict[int, _Subscription]] = defaultdict(dict)
        self._ids = itertools.count(1)

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    def has_subscribers(self, feed: Feed, couple_id: str) -> bool:
        return bool(self._subscriptions.get((feed, couple_id)))

    async def snapshot(self, feed: Feed, couple_id: str, limit: int | None = None) -> Any:
        try:
            async with self._session_factory() as db:
                return await query_feed(db, feed, couple_id, limit)
        except SQLAlchemyError as exc:
            raise FeedUnavailable(str(exc)) from exc

    async def subscribe(
        self,
        feed: Feed | str,
        couple_id: str,
        callback: FeedCallback,
        limit: int | None = None,
    ) -> Callable[[], None]:
        """Register a callback and deliver the initial snapshot.

        Returns the unsubscribe callable; the caller must invoke it on teardown.
        Raises ``FeedUnavailable`` (and registers nothing) if the first query fails.
        """
        feed = Feed(feed)
        key = (feed, couple_id)
        token = next(self._ids)
        subscription = _Subscription(feed=feed, couple_id=couple_id, callback=callback, limit=limit)
        self._subscriptions[key][token] = subscription

        def unsubscribe() -> None:
            subs = self._subscriptions.get(key)
            if subs is None:
                return
            subs.pop(token, None)
            if not subs:
                del self._subscriptions[key]

        try:
            data = await self.snapshot(feed, couple_id, limit)
        except FeedUnavailable:
            unsubscribe()
            raise
        if not await self._deliver(subscription, data):
            unsubscribe()
        logger.debug("feed_subscribed", feed=feed.value, couple_id=couple_id)
        return unsubscribe

    async def publish_change(self, feed: Feed | str, couple_id: str) -> int:
        """Re-run a feed's query and push the result to every subscriber.

        Returns the number of callbacks that received the snapshot.
        """
        feed = Feed(feed)
        key = (feed, couple_id)
        subscriptions = list(self._subscriptions.get(key, {}).items())
        if not subscriptions:
            return 0

        snapshots: dict[int | None, Any] = {}
        try:
            for _, sub in subscriptions:
                if sub.limit not in snapshots:
                    snapshots[sub.limit] = await self.snapshot(feed, couple_id, sub.limit)
        except FeedUnavailable:
            logger.warning("feed_query_failed", feed=feed.value, couple_id=couple_id, exc_info=True)
            return 0

        delivered = 0
        for token, sub in subscriptions:
            if await self._deliver(sub, snapshots[sub.limit]):
                delivered += 1
            else:
                self._subscriptions.get(key, {}).pop(token, None)
        if key in self._subscriptions and not self._subscriptions[key]:
            del self._subscriptions[key]
        return delivered

    async def _deliver(self, subscription: _Subscription, data: Any) -> bool:
        try:
            outcome = subscription.callback(data)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.warning(
                "feed_callback_failed",
                feed=subscription.feed.value,
                couple_id=subscription.couple_id,
                exc_info=True,
            )
            return False
        return True


# Global singleton
hub = FeedHub()
