"""
HealthVibe API - entry point.

Run with:
    healthvibe-api
or:
    uvicorn healthvibe.main:app --reload
"""

from __future__ import annotations

import logging

import uvicorn

from healthvibe.api.app import create_app
from healthvibe.config import get_settings

app = create_app()


def main() -> None:
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "healthvibe.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
