from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MemorialOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    title: str
    full_name: str
    biography: str | None
    is_public: bool
    status: str
    created_by: int
    created_at: datetime
    updated_at: datetime


class MemorialUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    biography: str | None = None
    is_public: bool | None = None


class AvailableActionsOut(BaseModel):
    resource: str
    role: str | None
    is_owner: bool
    actions: list[str]
