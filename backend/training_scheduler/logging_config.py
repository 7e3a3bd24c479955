import logging
import os
from logging.config import dictConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Configure process logging from ``SCHEDULER_*`` environment flags.

    ``SCHEDULER_LOG_LEVEL`` sets the root level and
    ``SCHEDULER_TELEMETRY_LOG_LEVEL`` the level of the telemetry stream, so
    event lines can be silenced without hiding scheduler warnings.
    """
    level = os.getenv("SCHEDULER_LOG_LEVEL", "INFO").upper()
    telemetry_level = os.getenv("SCHEDULER_TELEMETRY_LOG_LEVEL", level).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": DEFAULT_LOG_FORMAT}},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "training_scheduler.telemetry": {"level": telemetry_level},
            },
            "root": {"handlers": ["stderr"], "level": level},
        }
    )

    if os.getenv("SCHEDULER_DEBUG_SQL", "0") == "1":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
