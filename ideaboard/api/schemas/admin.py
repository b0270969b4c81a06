from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

RoleName = Literal["user", "manager", "developer", "admin"]
StackName = Literal["frontend", "backend", "infra"]


class AdminUserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    stacks: list[str] = Field(default_factory=list)
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class AdminUserCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=256)
    role: RoleName = "user"
    stacks: list[StackName] = Field(default_factory=list)


class AdminUserUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=120)
    role: RoleName | None = None
    is_active: StrictBool | None = None

    @model_validator(mode="after")
    def _require_change(self):
        if self.name is None and self.role is None and self.is_active is None:
            raise ValueError("Provide at least one field to update")
        return self


class AdminUserStacksRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stacks: list[StackName]


class AdminProjectCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=160)
    description: str | None = Field(default=None, max_length=4000)


class ProjectMemberResponse(BaseModel):
    user_id: int
    name: str
    email: str
    role: str
    joined_at: datetime


class AuditEventResponse(BaseModel):
    id: int
    event_type: str
    entity_type: str
    entity_id: str | None = None
    action: str
    actor_user_id: int | None = None
    request_id: str | None = None
    details_json: dict[str, Any] | None = None
    created_at: datetime
