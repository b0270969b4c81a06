"""Serve the API with uvicorn: ``python -m ideaboard``."""

import uvicorn

from ideaboard.core.config import get_settings


def main() -> None:
    settings = get_settings()
    # Logging is configured by create_app; keep uvicorn from installing its own handlers.
    uvicorn.run(
        "ideaboard.app:create_app",
        factory=True,
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
