from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ProjectResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    status: str
    is_active: bool
    created_by_user_id: int
    created_at: datetime
    updated_at: datetime
