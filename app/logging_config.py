from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `app.*` logger tree.

    Uvicorn installs the handlers; this only controls verbosity of our own
    loggers. Use `APP_LOG_LEVEL=DEBUG` to see every access decision.
    """

    normalized = level.upper()
    logging.getLogger("app").setLevel(normalized)
    logging.getLogger("app").propagate = True
