from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, model_validator

from ideaboard.api.schemas.common import ProgressResponse

StackName = Literal["frontend", "backend", "infra"]
StageName = Literal["todo", "doing", "review", "done", "blocked"]
PriorityName = Literal["low", "medium", "high", "urgent"]


class TaskResponse(BaseModel):
    id: int
    project_id: int
    backlog_item_id: int
    stack: str
    title: str
    description: str | None = None
    is_done: bool
    done_at: datetime | None = None
    order_index: int
    created_by_user_id: int
    created_at: datetime
    updated_at: datetime


class BacklogItemResponse(BaseModel):
    id: int
    project_id: int
    origin_type: str
    suggestion_id: int | None = None
    title: str
    summary: str | None = None
    stage: str
    priority: str
    progress_percent: int
    created_by_user_id: int
    created_at: datetime
    updated_at: datetime


class BacklogItemDetailResponse(BacklogItemResponse):
    tasks: list[TaskResponse] = Field(default_factory=list)


class BacklogItemCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    summary: str | None = Field(default=None, max_length=10_000)
    priority: PriorityName = "medium"


class BacklogItemUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=200)
    summary: str | None = Field(default=None, max_length=10_000)
    stage: StageName | None = None
    priority: PriorityName | None = None

    @model_validator(mode="after")
    def _require_change(self):
        if all(value is None for value in (self.title, self.summary, self.stage, self.priority)):
            raise ValueError("Provide at least one field to update")
        return self


class TaskCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    stack: StackName
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)
    order_index: StrictInt | None = Field(default=None, ge=0)


class TaskUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)
    is_done: StrictBool | None = None
    order_index: StrictInt | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _require_change(self):
        fields = (self.title, self.description, self.is_done, self.order_index)
        if all(value is None for value in fields):
            raise ValueError("Provide at least one field to update")
        return self


class TaskMutationResponse(BaseModel):
    task: TaskResponse
    progress: ProgressResponse
