"""Run the CMMS web front-end with uvicorn."""

from __future__ import annotations

import logging

import uvicorn

from .config import get_settings
from .logging_setup import setup_logging
from .web.app import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = settings.log_level.upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s on %s:%s", settings.app_name, settings.host, settings.port)
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
