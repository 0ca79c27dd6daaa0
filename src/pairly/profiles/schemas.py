"""Pydantic schemas for profile endpoints.

Request bodies use the document field names (camelCase) on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateProfileRequest(_CamelModel):
    email: str | None = Field(None, max_length=320)
    display_name: str | None = Field(None, max_length=64)
    photo_url: str | None = Field(None, alias="photoURL")


class UpdateProfileRequest(_CamelModel):
    display_name: str | None = Field(None, min_length=1, max_length=64)
    photo_url: str | None = Field(None, alias="photoURL")
    is_premium: bool | None = None
    premium_expiry: datetime | None = None
    settings: dict[str, Any] | None = None
    welcome_notification_shown: bool | None = None
    expo_push_token: str | None = Field(None, max_length=256)

    def to_fields(self) -> dict[str, Any]:
        """Only the fields the client sent, keyed by document field name."""
        return self.model_dump(exclude_unset=True, by_alias=True)


class AdjustHeartsRequest(BaseModel):
    """Clients may only spend; hearts are earned through server-side actions."""

    delta: int = Field(..., le=0)
