from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    service: str
    environment: str
    version: str
    timestamp: datetime


class ProgressResponse(BaseModel):
    backlog_item_id: int
    backlog_progress: int
    suggestion_id: int | None = None
    suggestion_progress: int | None = None
