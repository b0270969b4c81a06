from datetime import datetime, timezone
from time import perf_counter

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ideaboard.api.deps.auth import require_admin
from ideaboard.api.schemas.common import HealthResponse
from ideaboard.core.config import get_settings
from ideaboard.core.database import get_session
from ideaboard.core.metrics import metrics_registry

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        service=settings.BACKEND_APP_NAME,
        environment=settings.BACKEND_ENV,
        version=settings.BACKEND_APP_VERSION,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health/deep")
async def deep_health(
    _: object = Depends(require_admin),
):
    settings = get_settings()
    overall = "ok"
    checks: dict[str, dict] = {}

    db_started = perf_counter()
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = {
            "status": "ok",
            "latency_ms": round((perf_counter() - db_started) * 1000.0, 3),
        }
    except (SQLAlchemyError, OSError) as exc:
        checks["database"] = {"status": "fail", "error": exc.__class__.__name__}
        overall = _merge_status(overall, "fail")

    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    redis_started = perf_counter()
    try:
        await redis.ping()
        checks["redis"] = {
            "status": "ok",
            "latency_ms": round((perf_counter() - redis_started) * 1000.0, 3),
        }
    except (RedisError, OSError) as exc:
        checks["redis"] = {"status": "degraded", "error": exc.__class__.__name__}
        overall = _merge_status(overall, "degraded")
    finally:
        await redis.aclose()

    return {
        "status": overall,
        "service": settings.BACKEND_APP_NAME,
        "environment": settings.BACKEND_ENV,
        "version": settings.BACKEND_APP_VERSION,
        "timestamp": datetime.now(timezone.utc),
        "checks": checks,
    }


@router.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics(
    _: object = Depends(require_admin),
):
    settings = get_settings()
    if not settings.BACKEND_ENABLE_METRICS:
        return PlainTextResponse("metrics disabled\n", status_code=503)
    return PlainTextResponse(
        metrics_registry.render_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


def _merge_status(current: str, incoming: str) -> str:
    order = {"ok": 0, "degraded": 1, "fail": 2}
    return incoming if order[incoming] > order[current] else current
