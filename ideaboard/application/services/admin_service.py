from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from ideaboard.application.services.serializers import project_payload, user_payload
from ideaboard.core.config import get_settings
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.core.security import hash_password
from ideaboard.domain.catalog import ROLES, STACKS
from ideaboard.infrastructure.repositories.audit_repository import AuditRepository
from ideaboard.infrastructure.repositories.auth_repository import AuthRepository
from ideaboard.infrastructure.repositories.project_repository import ProjectRepository

logger = logging.getLogger(__name__)


class AdminService:
    async def list_users(
        self,
        *,
        include_inactive: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        async with get_session() as session:
            repo = AuthRepository(session)
            users = await repo.list_users(
                include_inactive=include_inactive,
                limit=limit,
                offset=offset,
            )
            return [
                user_payload(user, stacks=await repo.list_user_stacks(user.id))
                for user in users
            ]

    async def create_user(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: str,
        stacks: list[str] | None = None,
    ) -> dict:
        self._validate_role(role)
        self._validate_stacks(stacks or [])
        settings = get_settings()
        try:
            async with get_session() as session:
                repo = AuthRepository(session)
                if await repo.get_user_by_email(email) is not None:
                    raise _email_taken(email)
                user = await repo.create_user(
                    name=name.strip(),
                    email=email,
                    password_hash=hash_password(
                        password,
                        iterations=settings.BACKEND_PASSWORD_HASH_ITERATIONS,
                    ),
                    role=role,
                )
                assigned = await repo.replace_user_stacks(user_id=user.id, stacks=stacks or [])
                payload = user_payload(user, stacks=assigned)
        except IntegrityError as exc:
            raise _email_taken(email) from exc
        logger.info("User #%s created with role %s", payload["id"], role)
        return payload

    async def update_user(
        self,
        *,
        actor_user_id: int,
        user_id: int,
        name: str | None = None,
        role: str | None = None,
        is_active: bool | None = None,
    ) -> dict:
        if role is not None:
            self._validate_role(role)
        if user_id == actor_user_id and (is_active is False or (role and role != "admin")):
            raise ApiException(
                status_code=409,
                error_code="ADMIN_SELF_DEMOTION",
                message="Admins cannot deactivate or demote themselves",
            )
        async with get_session() as session:
            repo = AuthRepository(session)
            user = await self._get_user(repo, user_id)
            if name is not None:
                user.name = name.strip()
            if role is not None:
                user.role = role
            if is_active is not None:
                user.is_active = is_active
                user.deleted_at = None if is_active else datetime.now(timezone.utc)
            await session.flush()
            return user_payload(user, stacks=await repo.list_user_stacks(user.id))

    async def replace_user_stacks(self, *, user_id: int, stacks: list[str]) -> dict:
        self._validate_stacks(stacks)
        async with get_session() as session:
            repo = AuthRepository(session)
            user = await self._get_user(repo, user_id)
            assigned = await repo.replace_user_stacks(user_id=user.id, stacks=stacks)
            payload = user_payload(user, stacks=assigned)
        logger.info("User #%s stacks set to %s", user_id, payload["stacks"])
        return payload

    async def create_project(
        self,
        *,
        actor_user_id: int,
        name: str,
        description: str | None = None,
    ) -> dict:
        async with get_session() as session:
            project = await ProjectRepository(session).create_project(
                name=name.strip(),
                description=description,
                created_by_user_id=actor_user_id,
            )
            payload = project_payload(project)
        logger.info("Project #%s created", payload["id"])
        return payload

    async def archive_project(self, *, project_id: int) -> dict:
        async with get_session() as session:
            project = await self._get_project(ProjectRepository(session), project_id)
            project.status = "archived"
            project.is_active = False
            project.deleted_at = datetime.now(timezone.utc)
            await session.flush()
            return project_payload(project)

    async def list_members(self, *, project_id: int) -> list[dict]:
        async with get_session() as session:
            repo = ProjectRepository(session)
            await self._get_project(repo, project_id)
            rows = await repo.list_members(project_id)
            return [
                {
                    "user_id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "role": user.role,
                    "joined_at": member.created_at,
                }
                for member, user in rows
            ]

    async def add_member(self, *, project_id: int, user_id: int) -> dict:
        try:
            async with get_session() as session:
                repo = ProjectRepository(session)
                await self._get_project(repo, project_id)
                user = await self._get_user(AuthRepository(session), user_id)
                if await repo.is_member(project_id=project_id, user_id=user_id):
                    raise _member_exists(project_id, user_id)
                member = await repo.add_member(project_id=project_id, user_id=user_id)
                payload = {
                    "user_id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "role": user.role,
                    "joined_at": member.created_at,
                }
        except IntegrityError as exc:
            raise _member_exists(project_id, user_id) from exc
        logger.info("User #%s added to project #%s", user_id, project_id)
        return payload

    async def remove_member(self, *, project_id: int, user_id: int) -> None:
        async with get_session() as session:
            removed = await ProjectRepository(session).remove_member(
                project_id=project_id,
                user_id=user_id,
            )
        if not removed:
            raise ApiException(
                status_code=404,
                error_code="PROJECT_MEMBER_NOT_FOUND",
                message=f"User #{user_id} is not a member of project #{project_id}",
            )
        logger.info("User #%s removed from project #%s", user_id, project_id)

    async def list_audit_events(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        entity_type: str | None = None,
        actor_user_id: int | None = None,
    ) -> list[dict]:
        async with get_session() as session:
            events = await AuditRepository(session).list_events(
                limit=limit,
                offset=offset,
                entity_type=entity_type,
                actor_user_id=actor_user_id,
            )
            return [
                {
                    "id": event.id,
                    "event_type": event.event_type,
                    "entity_type": event.entity_type,
                    "entity_id": event.entity_id,
                    "action": event.action,
                    "actor_user_id": event.actor_user_id,
                    "request_id": event.request_id,
                    "details_json": event.details_json,
                    "created_at": event.created_at,
                }
                for event in events
            ]

    @staticmethod
    async def _get_user(repo: AuthRepository, user_id: int):
        user = await repo.get_user(user_id)
        if user is None:
            raise ApiException(
                status_code=404,
                error_code="USER_NOT_FOUND",
                message=f"User #{user_id} not found",
            )
        return user

    @staticmethod
    async def _get_project(repo: ProjectRepository, project_id: int):
        project = await repo.get_project(project_id)
        if project is None:
            raise ApiException(
                status_code=404,
                error_code="PROJECT_NOT_FOUND",
                message=f"Project #{project_id} not found",
            )
        return project

    @staticmethod
    def _validate_role(role: str) -> None:
        if role not in ROLES:
            raise ApiException(
                status_code=422,
                error_code="ROLE_INVALID",
                message=f"Unknown role: {role}",
                details={"allowed": list(ROLES)},
            )

    @staticmethod
    def _validate_stacks(stacks: list[str]) -> None:
        unknown = sorted(set(stacks) - set(STACKS))
        if unknown:
            raise ApiException(
                status_code=422,
                error_code="STACK_INVALID",
                message=f"Unknown stacks: {', '.join(unknown)}",
                details={"allowed": list(STACKS)},
            )


def _email_taken(email: str) -> ApiException:
    return ApiException(
        status_code=409,
        error_code="USER_EMAIL_TAKEN",
        message=f"A user with email {email.strip().lower()} already exists",
    )


def _member_exists(project_id: int, user_id: int) -> ApiException:
    return ApiException(
        status_code=409,
        error_code="PROJECT_MEMBER_EXISTS",
        message=f"User #{user_id} is already a member of project #{project_id}",
    )
