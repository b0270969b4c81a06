from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressSnapshot:
    backlog_item_id: int
    backlog_progress: int
    suggestion_id: int | None = None
    suggestion_progress: int | None = None

    def as_dict(self) -> dict:
        return {
            "backlog_item_id": self.backlog_item_id,
            "backlog_progress": self.backlog_progress,
            "suggestion_id": self.suggestion_id,
            "suggestion_progress": self.suggestion_progress,
        }
