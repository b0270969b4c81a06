"""Infrastructure repositories."""

from ideaboard.infrastructure.repositories.audit_repository import AuditRepository
from ideaboard.infrastructure.repositories.auth_repository import AuthRepository
from ideaboard.infrastructure.repositories.backlog_repository import BacklogRepository
from ideaboard.infrastructure.repositories.project_repository import ProjectRepository
from ideaboard.infrastructure.repositories.suggestion_repository import (
    SuggestionRepository,
)

__all__ = [
    "AuditRepository",
    "AuthRepository",
    "BacklogRepository",
    "ProjectRepository",
    "SuggestionRepository",
]
