from logging.config import dictConfig
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", json_format: bool = False, logger_levels: Optional[dict] = None):
    loggers = {
        # motor/pymongo are chatty at DEBUG
        "pymongo": {"level": "WARNING"},
    }
    for name, logger_level in (logger_levels or {}).items():
        loggers[name] = {"level": logger_level}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": LOG_FORMAT,
                },
                "json": {
                    "format": '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_format else "default",
                },
            },
            "loggers": loggers,
            "root": {
                "level": level.upper(),
                "handlers": ["console"],
            },
        }
    )
