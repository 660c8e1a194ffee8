"""Logging setup shared by the API server and the CLI."""

import logging
import sys

from tradelog.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Libraries that log every request/statement at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx")


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once. Safe to call repeatedly."""
    level_name = (level or settings.log_level).upper()
    root = logging.getLogger()
    root.setLevel(level_name)

    if not any(getattr(h, "_tradelog", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._tradelog = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
