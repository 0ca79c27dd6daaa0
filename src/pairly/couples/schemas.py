"""Pydantic schemas for couple endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectRequest(_CamelModel):
    invite_code: str = Field(..., min_length=1, max_length=16)


class UpdateCoupleRequest(_CamelModel):
    couple_name: str | None = Field(None, min_length=1, max_length=140)
    anniversary: date | None = None


class LoveZoneItemRequest(BaseModel):
    item: dict[str, Any]


class PlaceItemRequest(BaseModel):
    item: dict[str, Any]
    position: dict[str, Any]
