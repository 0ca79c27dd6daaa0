"""Closed set of in-app notification kinds.

Each kind has one frozen event dataclass carrying exactly the data its text needs.
``render()`` matches on the event type, so adding a kind without a renderer branch
fails type checking through ``assert_never``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import assert_never

NOTE_PREVIEW_LENGTH = 50
FALLBACK_NAME = "Your partner"


class NotificationKind(str, Enum):
    WELCOME = "welcome"
    PARTNER = "partner"
    NOTE = "note"
    MOOD = "mood"
    GIFT = "gift"
    DATE = "date"


@dataclass(frozen=True)
class Welcome:
    display_name: str
    invite_code: str


@dataclass(frozen=True)
class PartnerConnected:
    partner_name: str | None
    couple_id: str


@dataclass(frozen=True)
class NoteReceived:
    sender_name: str | None
    note_id: str
    note_type: str
    content: str


@dataclass(frozen=True)
class MoodChanged:
    user_name: str | None
    user_id: str
    emoji: str
    label: str
    note: str | None = None


@dataclass(frozen=True)
class GiftReceived:
    sender_name: str | None
    gift_id: str
    label: str
    message: str | None = None


@dataclass(frozen=True)
class DatePlanned:
    creator_name: str | None
    date_id: str
    title: str
    note: str | None = None


NotificationEvent = Welcome | PartnerConnected | NoteReceived | MoodChanged | GiftReceived | DatePlanned


@dataclass(frozen=True)
class RenderedNotification:
    kind: NotificationKind
    title: str
    body: str
    full_message: str
    related_id: str | None

    def to_payload(self, user_id: str) -> dict[str, str | None]:
        """The push payload shape ``{userId, type, title, body, fullMessage, relatedId}``."""
        return {
            "userId": user_id,
            "type": self.kind.value,
            "title": self.title,
            "body": self.body,
            "fullMessage": self.full_message,
            "relatedId": self.related_id,
        }


def _note_preview(note_type: str, content: str) -> str:
    if note_type == "doodle":
        return "sent you a doodle 🎨"
    if len(content) > NOTE_PREVIEW_LENGTH:
        return content[:NOTE_PREVIEW_LENGTH] + "..."
    return content


def render(event: NotificationEvent) -> RenderedNotification:
    """Render an event into notification text."""
    match event:
        case Welcome(display_name=name, invite_code=code):
            return RenderedNotification(
                kind=NotificationKind.WELCOME,
                title=f"💕 Welcome, {name}!",
                body=f"Share your invite code {code} with your partner",
                full_message=f"Share your invite code {code} with your partner to connect.",
                related_id=None,
            )
        case PartnerConnected(partner_name=name, couple_id=couple_id):
            name = name or FALLBACK_NAME
            return RenderedNotification(
                kind=NotificationKind.PARTNER,
                title="💞 You're connected!",
                body=f"{name} connected with you",
                full_message=f"{name} used your invite code. You're now a couple!",
                related_id=couple_id,
            )
        case NoteReceived(sender_name=name, note_id=note_id, note_type=note_type, content=content):
            name = name or FALLBACK_NAME
            preview = _note_preview(note_type, content)
            return RenderedNotification(
                kind=NotificationKind.NOTE,
                title=f"💌 New message from {name}",
                body=preview if note_type == "doodle" else f'"{preview}"',
                full_message=content or preview,
                related_id=note_id,
            )
        case MoodChanged(user_name=name, user_id=user_id, emoji=emoji, label=label, note=note):
            name = name or FALLBACK_NAME
            body = f"{name} is feeling {label}"
            return RenderedNotification(
                kind=NotificationKind.MOOD,
                title=f"{emoji} {name}'s mood changed",
                body=body,
                full_message=f'{body}: "{note}"' if note else body,
                related_id=user_id,
            )
        case GiftReceived(sender_name=name, gift_id=gift_id, label=label, message=message):
            name = name or FALLBACK_NAME
            label = label or "a special gift"
            return RenderedNotification(
                kind=NotificationKind.GIFT,
                title=f"🎁 {name} sent you a gift!",
                body=f"You received: {label}",
                full_message=f'{name} sent you {label}: "{message}"' if message else f"{name} sent you {label}!",
                related_id=gift_id,
            )
        case DatePlanned(creator_name=name, date_id=date_id, title=title, note=note):
            name = name or FALLBACK_NAME
            title = title or "a special date"
            return RenderedNotification(
                kind=NotificationKind.DATE,
                title="📅 New date planned!",
                body=f"{name} planned: {title}",
                full_message=f'{name} planned "{title}": {note}' if note else f'{name} planned "{title}"',
                related_id=date_id,
            )
        case _:
            assert_never(event)
