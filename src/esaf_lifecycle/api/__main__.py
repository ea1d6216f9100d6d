"""
esaf_lifecycle.api.__main__

Entrypoint for running the FastAPI application via `python -m esaf_lifecycle.api`.

Responsibilities:
- Load settings.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from esaf_lifecycle.api.app import create_app
from esaf_lifecycle.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
