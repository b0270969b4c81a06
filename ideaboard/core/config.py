from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_ROOT_ENV_FILE = _PROJECT_ROOT / ".env"


class BackendSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ROOT_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # FastAPI app
    BACKEND_APP_NAME: str = "Ideaboard Backend"
    BACKEND_APP_VERSION: str = "0.1.0"
    BACKEND_API_PREFIX: str = "/api/v1"
    BACKEND_ENV: str = "development"
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    BACKEND_LOG_LEVEL: str = "INFO"
    BACKEND_LOG_FORMAT: str = "text"
    BACKEND_ENABLE_ACCESS_LOG: bool = True
    BACKEND_ENABLE_METRICS: bool = True
    BACKEND_AUDIT_ENABLED: bool = True
    BACKEND_CORS_ENABLED: bool = True
    BACKEND_CORS_ALLOW_ORIGINS: str = "http://127.0.0.1:8080,http://localhost:8080"
    BACKEND_CORS_ALLOW_CREDENTIALS: bool = True
    BACKEND_CORS_ALLOW_METHODS: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    BACKEND_CORS_ALLOW_HEADERS: str = "Authorization,Content-Type,Accept,Origin,X-Requested-With"
    BACKEND_CORS_EXPOSE_HEADERS: str = "X-Request-ID"
    BACKEND_CORS_MAX_AGE_SECONDS: int = 600

    # Database
    BACKEND_DATABASE_URL: str = ""
    BACKEND_DATABASE_ECHO: bool = False
    BACKEND_DATABASE_POOL_SIZE: int = 10
    BACKEND_DATABASE_MAX_OVERFLOW: int = 20
    BACKEND_AUTO_CREATE_TABLES: bool = True
    BACKEND_BOOTSTRAP_BLOCKING: bool = False
    BACKEND_BOOTSTRAP_RETRY_ATTEMPTS: int = 3
    BACKEND_BOOTSTRAP_RETRY_DELAY_SECONDS: int = 2
    BACKEND_BOOTSTRAP_ADMIN_NAME: str = "Administrator"
    BACKEND_BOOTSTRAP_ADMIN_EMAIL: str = ""
    BACKEND_BOOTSTRAP_ADMIN_PASSWORD: str = ""

    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "ideaboard"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    BACKEND_REDIS_KEY_PREFIX: str = "ideaboard"
    BACKEND_CACHE_ENABLED: bool = True
    BACKEND_CACHE_PREFIX: str = "ideaboard:cache"
    BACKEND_CACHE_PROJECTS_TTL_SECONDS: int = 60
    BACKEND_CACHE_SUGGESTIONS_TTL_SECONDS: int = 15
    BACKEND_CACHE_BACKLOG_TTL_SECONDS: int = 15

    # Auth
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXP_MINUTES: int = 60 * 24 * 7
    JWT_LEEWAY_SECONDS: int = 30
    BACKEND_PASSWORD_HASH_ITERATIONS: int = 240_000

    # Reliability / rate limiting
    BACKEND_RATE_LIMIT_ENABLED: bool = True
    BACKEND_RATE_LIMIT_WINDOW_SECONDS: int = 60
    BACKEND_RATE_LIMIT_MAX_REQUESTS: int = 120
    BACKEND_RATE_LIMIT_PRIVILEGED_MAX_REQUESTS: int = 45
    BACKEND_RATE_LIMIT_AUTH_MAX_REQUESTS: int = 20
    BACKEND_ANOMALY_WINDOW_SECONDS: int = 300
    BACKEND_ANOMALY_THRESHOLD: int = 12

    @property
    def database_url(self) -> str:
        if self.BACKEND_DATABASE_URL:
            return self.BACKEND_DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def bootstrap_admin_email(self) -> str | None:
        cleaned = self.BACKEND_BOOTSTRAP_ADMIN_EMAIL.strip().lower()
        return cleaned or None

    @property
    def cors_allow_origins(self) -> list[str]:
        return self._split_csv(self.BACKEND_CORS_ALLOW_ORIGINS)

    @property
    def cors_allow_methods(self) -> list[str]:
        return self._split_csv(self.BACKEND_CORS_ALLOW_METHODS)

    @property
    def cors_allow_headers(self) -> list[str]:
        return self._split_csv(self.BACKEND_CORS_ALLOW_HEADERS)

    @property
    def cors_expose_headers(self) -> list[str]:
        return self._split_csv(self.BACKEND_CORS_EXPOSE_HEADERS)

    @staticmethod
    def _split_csv(raw: str) -> list[str]:
        return [item.strip() for item in raw.split(",") if item.strip()]

    @property
    def is_development_environment(self) -> bool:
        return self.BACKEND_ENV.strip().lower() in {"dev", "development", "local", "test"}


@lru_cache
def get_settings() -> BackendSettings:
    return BackendSettings()
