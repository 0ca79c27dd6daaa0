"""Feed names and Redis channel naming shared by publishers and subscribers."""

from __future__ import annotations

from enum import Enum

COUPLE_CHANNEL_PREFIX = "ws:couple:"
USER_CHANNEL_PREFIX = "ws:user:"


class Feed(str, Enum):
    """Couple-scoped standing queries a client can subscribe to."""

    COUPLE = "couple"
    PET = "pet"
    NOTES = "notes"
    MOODS = "moods"
    GIFTS = "gifts"
    SPECIAL_DATES = "specialDates"


def couple_channel(couple_id: str) -> str:
    return f"{COUPLE_CHANNEL_PREFIX}{couple_id}"


def user_channel(user_id: str) -> str:
    return f"{USER_CHANNEL_PREFIX}{user_id}"
