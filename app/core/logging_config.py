"""
Logging setup shared by the API process and the queue workers.
"""

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once per process."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level.upper(),
        },
        "loggers": {
            # rq logs every job start/finish at INFO
            "rq.worker": {"level": "INFO"},
            "httpx": {"level": "WARNING"},
        },
    })
