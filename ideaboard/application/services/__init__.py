"""Application services."""

from ideaboard.application.services.admin_service import AdminService
from ideaboard.application.services.auth_service import AuthService
from ideaboard.application.services.backlog_service import BacklogService
from ideaboard.application.services.bootstrap_service import BootstrapService
from ideaboard.application.services.progress_service import ProgressAggregator
from ideaboard.application.services.project_service import ProjectService
from ideaboard.application.services.promotion_service import PromotionService
from ideaboard.application.services.suggestion_service import SuggestionService
from ideaboard.application.services.task_service import TaskService
from ideaboard.application.services.voting_service import VotingService

__all__ = [
    "AdminService",
    "AuthService",
    "BacklogService",
    "BootstrapService",
    "ProgressAggregator",
    "ProjectService",
    "PromotionService",
    "SuggestionService",
    "TaskService",
    "VotingService",
]
