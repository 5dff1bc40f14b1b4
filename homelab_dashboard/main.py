"""CLI entrypoint for launching the dashboard service with Uvicorn."""
from __future__ import annotations

import logging

import uvicorn

from .api import create_app
from .config import get_settings
from .errors import StorageError


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")

    try:
        app = create_app(settings)
    except StorageError as exc:
        logging.critical("Cannot start: %s", exc)
        raise SystemExit(1) from exc

    logging.info(
        "Starting dashboard on %s:%d (database %s, metrics every %.1fs)",
        settings.host,
        settings.port,
        settings.database_path,
        settings.metrics_interval,
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
