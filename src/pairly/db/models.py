"""ORM models for the couple core.

Table and column names are the document field names the mobile client screens read
(``users.inviteCode``, ``notes.coupleId``, ...). Python attributes are snake_case;
``to_document()`` renders the camelCase document.
"""

from __future__ import annotations

import datetime as dt
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from pairly.db.base import Base


def new_id() -> str:
    """Opaque document id."""
    return uuid.uuid4().hex


DEFAULT_USER_SETTINGS: dict[str, Any] = {
    "notifications": True,
    "soundEnabled": True,
    "theme": "light",
}

GIFT_PENDING = "pending"
GIFT_COMMITTED = "committed"
GIFT_ROLLED_BACK = "rolled_back"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' collection. ``hearts`` is the ledger balance."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("hearts >= 0", name="ck_users_hearts_non_negative"),)

    uid: Mapped[str] = mapped_column("uid", String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column("email", String(320), nullable=True)
    display_name: Mapped[str] = mapped_column("displayName", String(64), nullable=False, default="User")
    photo_url: Mapped[str | None] = mapped_column("photoURL", Text, nullable=True)
    invite_code: Mapped[str] = mapped_column("inviteCode", String(6), nullable=False, unique=True)
    couple_id: Mapped[str | None] = mapped_column("coupleId", String(32), nullable=True)
    partner_id: Mapped[str | None] = mapped_column("partnerId", String(128), nullable=True)
    is_premium: Mapped[bool] = mapped_column("isPremium", Boolean, nullable=False, default=False)
    premium_expiry: Mapped[datetime | None] = mapped_column("premiumExpiry", DateTime(timezone=True), nullable=True)
    hearts: Mapped[int] = mapped_column("hearts", Integer, nullable=False, default=0)
    settings: Mapped[dict[str, Any]] = mapped_column("settings", JSON, nullable=False, default=lambda: dict(DEFAULT_USER_SETTINGS))
    welcome_notification_shown: Mapped[bool] = mapped_column("welcomeNotificationShown", Boolean, nullable=False, default=False)
    expo_push_token: Mapped[str | None] = mapped_column("expoPushToken", String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column("updatedAt", DateTime(timezone=True), nullable=False)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.uid,
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
            "inviteCode": self.invite_code,
            "coupleId": self.couple_id,
            "partnerId": self.partner_id,
            "isPremium": self.is_premium,
            "premiumExpiry": self.premium_expiry,
            "hearts": self.hearts,
            "settings": self.settings,
            "welcomeNotificationShown": self.welcome_notification_shown,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Couples
# ---------------------------------------------------------------------------


class Couple(Base):
    """Maps to the 'couples' collection.

    ``pet`` and ``loveZone`` are embedded sub-documents. ``version`` is the
    optimistic-concurrency token every sub-document writer must compare against.
    """

    __tablename__ = "couples"

    id: Mapped[str] = mapped_column("id", String(32), primary_key=True, default=new_id)
    user1_id: Mapped[str] = mapped_column("user1Id", String(128), ForeignKey("users.uid"), nullable=False)
    user2_id: Mapped[str] = mapped_column("user2Id", String(128), ForeignKey("users.uid"), nullable=False)
    user1_name: Mapped[str | None] = mapped_column("user1Name", String(64), nullable=True)
    user2_name: Mapped[str | None] = mapped_column("user2Name", String(64), nullable=True)
    couple_name: Mapped[str | None] = mapped_column("coupleName", String(140), nullable=True)
    connected_at: Mapped[datetime | None] = mapped_column("connectedAt", DateTime(timezone=True), nullable=True)
    anniversary: Mapped[date | None] = mapped_column("anniversary", Date, nullable=True)
    pet: Mapped[dict[str, Any]] = mapped_column("pet", JSON, nullable=False)
    love_zone: Mapped[dict[str, Any]] = mapped_column("loveZone", JSON, nullable=False)
    version: Mapped[int] = mapped_column("version", Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column("updatedAt", DateTime(timezone=True), nullable=False)

    def member_ids(self) -> tuple[str, str]:
        return self.user1_id, self.user2_id

    def partner_of(self, user_id: str) -> str | None:
        if user_id == self.user1_id:
            return self.user2_id
        if user_id == self.user2_id:
            return self.user1_id
        return None

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user1Id": self.user1_id,
            "user2Id": self.user2_id,
            "user1Name": self.user1_name,
            "user2Name": self.user2_name,
            "coupleName": self.couple_name,
            "connectedAt": self.connected_at,
            "anniversary": self.anniversary,
            "pet": self.pet,
            "loveZone": self.love_zone,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Couple-scoped event records
# ---------------------------------------------------------------------------


class Note(Base):
    """Love note or doodle. Only ``isRead`` and ``isLiked`` change after creation."""

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column("id", String(32), primary_key=True, default=new_id)
    couple_id: Mapped[str] = mapped_column("coupleId", String(32), nullable=False)
    sender_id: Mapped[str] = mapped_column("senderId", String(128), nullable=False)
    receiver_id: Mapped[str] = mapped_column("receiverId", String(128), nullable=False)
    type: Mapped[str] = mapped_column("type", String(16), nullable=False)
    content: Mapped[str] = mapped_column("content", Text, nullable=False, default="")
    doodle_paths: Mapped[list[Any] | None] = mapped_column("doodlePaths", JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column("isRead", Boolean, nullable=False, default=False)
    is_liked: Mapped[bool] = mapped_column("isLiked", Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "coupleId": self.couple_id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "type": self.type,
            "content": self.content,
            "doodlePaths": self.doodle_paths,
            "isRead": self.is_read,
            "isLiked": self.is_liked,
            "createdAt": self.created_at,
        }


class Mood(Base):
    """Mood check-in. Never updated; the latest row per user is the current mood."""

    __tablename__ = "moods"

    id: Mapped[str] = mapped_column("id", String(32), primary_key=True, default=new_id)
    couple_id: Mapped[str] = mapped_column("coupleId", String(32), nullable=False)
    user_id: Mapped[str] = mapped_column("userId", String(128), nullable=False)
    mood_id: Mapped[str] = mapped_column("moodId", String(32), nullable=False)
    emoji: Mapped[str] = mapped_column("emoji", String(16), nullable=False)
    label: Mapped[str] = mapped_column("label", String(64), nullable=False)
    note: Mapped[str | None] = mapped_column("note", Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "coupleId": self.couple_id,
            "userId": self.user_id,
            "moodId": self.mood_id,
            "emoji": self.emoji,
            "label": self.label,
            "note": self.note,
            "createdAt": self.created_at,
        }


class Gift(Base):
    """Gift record doubling as the send log: pending -> committed | rolled_back."""

    __tablename__ = "gifts"

    id: Mapped[str] = mapped_column("id", String(32), primary_key=True, default=new_id)
    couple_id: Mapped[str] = mapped_column("coupleId", String(32), nullable=False)
    sender_id: Mapped[str] = mapped_column("senderId", String(128), nullable=False)
    receiver_id: Mapped[str] = mapped_column("receiverId", String(128), nullable=False)
    gift_id: Mapped[str] = mapped_column("giftId", String(32), nullable=False)
    emoji: Mapped[str] = mapped_column("emoji", String(16), nullable=False)
    label: Mapped[str] = mapped_column("label", String(64), nullable=False)
    hearts: Mapped[int] = mapped_column("hearts", Integer, nullable=False)
    message: Mapped[str | None] = mapped_column("message", Text, nullable=True)
    is_opened: Mapped[bool] = mapped_column("isOpened", Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column("status", String(16), nullable=False, default=GIFT_PENDING)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column("resolvedAt", DateTime(timezone=True), nullable=True)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "coupleId": self.couple_id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "giftId": self.gift_id,
            "emoji": self.emoji,
            "label": self.label,
            "hearts": self.hearts,
            "message": self.message,
            "isOpened": self.is_opened,
            "createdAt": self.created_at,
        }


class SpecialDate(Base):
    """Anniversary singleton (id ``{coupleId}_anniversary``) or a custom dated entry."""

    __tablename__ = "specialDates"

    id: Mapped[str] = mapped_column("id", String(64), primary_key=True, default=new_id)
    couple_id: Mapped[str] = mapped_column("coupleId", String(32), nullable=False)
    type: Mapped[str] = mapped_column("type", String(16), nullable=False, default="custom")
    title: Mapped[str] = mapped_column("title", String(140), nullable=False)
    date: Mapped[dt.date] = mapped_column("date", Date, nullable=False)
    note: Mapped[str] = mapped_column("note", Text, nullable=False, default="")
    is_anniversary: Mapped[bool] = mapped_column("isAnniversary", Boolean, nullable=False, default=False)
    created_by: Mapped[str | None] = mapped_column("createdBy", String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column("updatedAt", DateTime(timezone=True), nullable=False)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "coupleId": self.couple_id,
            "type": self.type,
            "title": self.title,
            "date": self.date,
            "note": self.note,
            "isAnniversary": self.is_anniversary,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """In-app notification record. Only ``read`` changes after creation."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column("id", String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column("userId", String(128), nullable=False)
    type: Mapped[str] = mapped_column("type", String(16), nullable=False)
    title: Mapped[str] = mapped_column("title", String(200), nullable=False)
    message: Mapped[str] = mapped_column("message", Text, nullable=False)
    full_message: Mapped[str | None] = mapped_column("fullMessage", Text, nullable=True)
    related_id: Mapped[str | None] = mapped_column("relatedId", String(128), nullable=True)
    read: Mapped[bool] = mapped_column("read", Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime(timezone=True), nullable=False)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "fullMessage": self.full_message,
            "relatedId": self.related_id,
            "read": self.read,
            "createdAt": self.created_at,
        }


Index("ix_users_couple", User.couple_id)
Index("ix_notes_couple_created", Note.couple_id, Note.created_at)
Index("ix_notes_receiver_unread", Note.couple_id, Note.receiver_id, Note.is_read)
Index("ix_moods_couple_user_created", Mood.couple_id, Mood.user_id, Mood.created_at)
Index("ix_gifts_couple_created", Gift.couple_id, Gift.created_at)
Index("ix_gifts_status_created", Gift.status, Gift.created_at)
Index("ix_special_dates_couple", SpecialDate.couple_id)
Index("ix_notifications_user_created", Notification.user_id, Notification.created_at)
