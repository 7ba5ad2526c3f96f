import logging
import logging.config
from typing import Dict, Optional


LOGGING_CONFIG: Dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "DEBUG",
        }
    },
    "loggers": {
        # boto3 logs every request at INFO once the root level drops to DEBUG
        "botocore": {"level": "WARNING"},
        "urllib3": {"level": "WARNING"},
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
}


def configure_logging(level: Optional[str] = None) -> None:
    config = dict(LOGGING_CONFIG)
    if level:
        config["root"] = {**LOGGING_CONFIG["root"], "level": level.upper()}
    logging.config.dictConfig(config)
