"""Pydantic schemas for shared-resource endpoints."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Notes ---


class SendNoteRequest(_CamelModel):
    type: str = Field("text", max_length=16)
    content: str = Field("", max_length=5000)
    doodle_paths: list[Any] | None = None


class LikeNoteRequest(_CamelModel):
    is_liked: bool


# --- Moods ---


class SetMoodRequest(_CamelModel):
    mood_id: str = Field(..., min_length=1, max_length=32)
    emoji: str = Field(..., min_length=1, max_length=16)
    label: str = Field(..., min_length=1, max_length=64)
    note: str | None = Field(None, max_length=500)


# --- Gifts ---


class SendGiftRequest(_CamelModel):
    gift_id: str = Field(..., min_length=1, max_length=32)
    emoji: str = Field(..., min_length=1, max_length=16)
    label: str = Field(..., min_length=1, max_length=64)
    hearts: int = Field(..., ge=0)
    message: str | None = Field(None, max_length=500)


# --- Special dates ---


class AnniversaryRequest(BaseModel):
    date: dt.date


class AddDateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=140)
    date: dt.date
    note: str | None = Field(None, max_length=1000)


class UpdateDateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=140)
    date: dt.date | None = None
    note: str | None = Field(None, max_length=1000)

    def to_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# --- Pet ---


class UpdatePetRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=32)
    skin: str | None = Field(None, min_length=1, max_length=32)

    def to_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)
