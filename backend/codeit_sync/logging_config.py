import logging
import os
from logging.config import dictConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Configure process logging from the CODEIT_* environment flags."""
    level = os.getenv("CODEIT_LOG_LEVEL", "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEFAULT_LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
            "loggers": {
                # Upstream clients are chatty at INFO; keep request lines out unless debugging.
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
                # Per-run "Running job" lines; sweep outcomes are logged by the orchestrator.
                "apscheduler": {"level": "WARNING"},
            },
        }
    )

    if os.getenv("CODEIT_DEBUG_HTTP", "0") == "1":
        logging.getLogger("httpx").setLevel(logging.DEBUG)
        logging.getLogger("uvicorn.access").setLevel(logging.DEBUG)
