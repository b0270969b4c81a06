"""ORM model imports."""

from ideaboard.infrastructure.db.models.audit import AuditEvent
from ideaboard.infrastructure.db.models.auth import User, UserStack
from ideaboard.infrastructure.db.models.backlog import BacklogItem, BacklogTask
from ideaboard.infrastructure.db.models.projects import Project, ProjectMember
from ideaboard.infrastructure.db.models.suggestions import Suggestion, SuggestionVote

__all__ = [
    "AuditEvent",
    "BacklogItem",
    "BacklogTask",
    "Project",
    "ProjectMember",
    "Suggestion",
    "SuggestionVote",
    "User",
    "UserStack",
]
