from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator


class SuggestionAuthorResponse(BaseModel):
    id: int
    name: str


class SuggestionResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: str
    status: str
    progress_percent: int
    score: int
    upvotes_count: int
    downvotes_count: int
    backlog_item_id: int | None = None
    is_promoted: bool
    locked_at: datetime | None = None
    is_mine: bool
    author: SuggestionAuthorResponse | None = None
    my_vote: int = 0
    created_at: datetime
    updated_at: datetime


class SuggestionCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=10_000)


class SuggestionUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=10_000)

    @model_validator(mode="after")
    def _require_change(self):
        if self.title is None and self.description is None:
            raise ValueError("Provide at least one of title or description")
        return self


class VoteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: StrictInt = Field(ge=-1, le=1)


class VoteResponse(BaseModel):
    suggestion_id: int
    score: int
    upvotes: int
    downvotes: int
    my_vote: int
    prior_vote: int
