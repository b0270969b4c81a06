from __future__ import annotations

import logging
from time import perf_counter

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from ideaboard.core.config import BackendSettings, get_settings
from ideaboard.core.database import get_session
from ideaboard.core.errors import build_error_payload
from ideaboard.core.metrics import metrics_registry
from ideaboard.core.rate_limit import rate_limiter
from ideaboard.core.request_context import request_id_ctx
from ideaboard.infrastructure.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


class AccessLogMetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: BackendSettings | None = None):
        super().__init__(app)
        self.settings = settings or get_settings()

    async def dispatch(self, request: Request, call_next):
        started = perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route_path = _route_path(request)
            duration_seconds = max(0.0, perf_counter() - started)
            metrics_registry.record_http_request(
                method=request.method,
                route_path=route_path,
                status_code=status_code,
                duration_seconds=duration_seconds,
            )
            if self.settings.BACKEND_ENABLE_ACCESS_LOG:
                logger.info(
                    "http_request method=%s path=%s route=%s status=%s duration_ms=%.2f ip=%s",
                    request.method,
                    request.url.path,
                    route_path,
                    status_code,
                    duration_seconds * 1000.0,
                    _client_identity(request),
                )


class SecurityHardeningMiddleware(BaseHTTPMiddleware):
    PRIVILEGED_PREFIXES = ("/admin", "/system")
    HIGH_RISK_MUTATION_MARKERS = ("/promote", "/recompute", "/archive")

    def __init__(self, app, settings: BackendSettings | None = None):
        super().__init__(app)
        self.settings = settings or get_settings()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        method = request.method.upper()
        scope, limit, window_seconds = self._resolve_scope(method=method, path=path)
        identity = _client_identity(request)

        if self.settings.BACKEND_RATE_LIMIT_ENABLED and method != "OPTIONS":
            allowed, observed_count = await rate_limiter.check_limit(
                scope=scope,
                identity=identity,
                limit=limit,
                window_seconds=window_seconds,
            )
            if not allowed:
                metrics_registry.record_rate_limit_rejection(scope=scope)
                payload = build_error_payload(
                    status_code=429,
                    error_code="RATE_LIMITED",
                    message="Too many requests for this endpoint scope",
                    details={
                        "scope": scope,
                        "limit": limit,
                        "window_seconds": window_seconds,
                        "observed_count": observed_count,
                    },
                )
                return JSONResponse(
                    status_code=429,
                    content=payload,
                    headers={"Retry-After": str(window_seconds)},
                )

        response = await call_next(request)

        if (
            self.settings.BACKEND_ANOMALY_THRESHOLD > 0
            and scope in {"auth", "privileged"}
            and response.status_code in {401, 403}
        ):
            metrics_registry.record_authz_failure(
                scope=scope,
                status_code=response.status_code,
            )
            failure_count = await rate_limiter.record_authz_failure(
                scope=scope,
                identity=identity,
                window_seconds=max(1, self.settings.BACKEND_ANOMALY_WINDOW_SECONDS),
            )
            threshold = self.settings.BACKEND_ANOMALY_THRESHOLD
            if failure_count >= threshold and failure_count % threshold == 0:
                logger.warning(
                    "authorization anomaly detected scope=%s ip=%s failures=%s window=%ss",
                    scope,
                    identity,
                    failure_count,
                    self.settings.BACKEND_ANOMALY_WINDOW_SECONDS,
                )

        return response

    def _resolve_scope(self, *, method: str, path: str) -> tuple[str, int, int]:
        window = max(1, self.settings.BACKEND_RATE_LIMIT_WINDOW_SECONDS)
        general = max(1, self.settings.BACKEND_RATE_LIMIT_MAX_REQUESTS)
        api_prefix = self.settings.BACKEND_API_PREFIX.rstrip("/")
        if not path.startswith(api_prefix):
            return "external", general, window

        if path.startswith(f"{api_prefix}/auth/login"):
            return "auth", max(1, self.settings.BACKEND_RATE_LIMIT_AUTH_MAX_REQUESTS), window

        privileged_root = any(
            path.startswith(f"{api_prefix}{segment}") for segment in self.PRIVILEGED_PREFIXES
        )
        high_risk_marker = any(marker in path for marker in self.HIGH_RISK_MUTATION_MARKERS)
        if method in {"POST", "PUT", "PATCH", "DELETE"} and (privileged_root or high_risk_marker):
            return (
                "privileged",
                max(1, self.settings.BACKEND_RATE_LIMIT_PRIVILEGED_MAX_REQUESTS),
                window,
            )
        return "general", general, window


class AuditTrailMiddleware(BaseHTTPMiddleware):
    """Persists one audit event per mutating API request, after the response is built."""

    AUDIT_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
    SKIP_PREFIXES = ("/auth", "/system")
    ACTION_SEGMENTS = {"vote", "promote", "recompute", "archive", "stacks"}

    def __init__(self, app, settings: BackendSettings | None = None):
        super().__init__(app)
        self.settings = settings or get_settings()

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if not self.settings.BACKEND_AUDIT_ENABLED:
            return response
        method = request.method.upper()
        if method not in self.AUDIT_METHODS:
            return response

        entity_type, entity_id, action = self._resolve_event_dimensions(
            request.url.path, method
        )
        if entity_type is None:
            return response

        principal = getattr(request.state, "authenticated_principal", None)
        details = {
            "method": method,
            "path": request.url.path,
            "query": request.url.query or None,
            "status_code": response.status_code,
            "client_ip": _client_identity(request),
        }
        try:
            async with get_session() as session:
                await AuditRepository(session).create_event(
                    event_type=f"http.{entity_type}.{action}",
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action=action,
                    actor_user_id=getattr(principal, "user_id", None),
                    request_id=request_id_ctx.get(),
                    details_json=details,
                )
        except SQLAlchemyError:
            logger.exception(
                "Failed to persist audit event entity_type=%s action=%s path=%s",
                entity_type,
                action,
                request.url.path,
            )
        return response

    def _resolve_event_dimensions(
        self,
        path: str,
        method: str,
    ) -> tuple[str | None, str | None, str]:
        """Map ``/projects/1/suggestions/2/vote`` to ``("suggestions", "2", "vote")``."""
        action = method.lower()
        api_prefix = self.settings.BACKEND_API_PREFIX.rstrip("/")
        if not path.startswith(api_prefix):
            return None, None, action

        relative = path[len(api_prefix) :]
        if not relative.startswith("/") or relative.startswith(self.SKIP_PREFIXES):
            return None, None, action

        segments = [segment for segment in relative.split("/") if segment]
        if segments and segments[-1] in self.ACTION_SEGMENTS:
            action = segments.pop()

        entity_type: str | None = None
        entity_id: str | None = None
        for segment in segments:
            if segment.isdigit():
                entity_id = segment
            else:
                entity_type = segment
                entity_id = None
        return entity_type, entity_id, action


def _client_identity(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    if isinstance(route_path, str) and route_path:
        return route_path
    return request.url.path
