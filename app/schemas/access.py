from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AccessDecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    memorial_id: int
    memorial_slug: str | None
    is_public: bool
    is_owner: bool
    is_collaborator: bool
    request_status: Literal["pending", "approved", "declined"] | None
    can_view: bool
    access_status: str


class AccessRequestIn(BaseModel):
    email: str | None = Field(default=None, max_length=320)
    name: str | None = Field(default=None, max_length=200)
    message: str | None = Field(default=None, max_length=2000)


class AccessRequestResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    request_id: int | None
    already: bool
    can_view: bool


class AccessRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_user_id: int | None
    requester_email: str | None
    requester_name: str | None
    message: str | None
    status: str
    created_at: datetime
    updated_at: datetime
    decided_by: int | None
    decided_at: datetime | None


class AccessRequestDecisionIn(BaseModel):
    request_id: int
    status: Literal["approved", "declined"]


class AccessRequestDecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: int
    status: str
