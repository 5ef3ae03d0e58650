import logging
from configparser import RawConfigParser
from logging import Logger
from logging import config as logging_config
from typing import Optional

from mlintegrity import config

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "root": {"level": "INFO", "handlers": ["consoleHandler"]},
    "loggers": {
        "mlintegrity": {
            "level": "INFO",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "formatter",
            "stream": "ext://sys.stderr",
        }
    },
    "formatters": {
        "formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)


def _logging_config() -> Optional[RawConfigParser]:
    """Return the logging.conf to apply, None if there is none

    The file uses the logging.config.fileConfig format, so it must at least
    declare its loggers.
    """
    parser = config.get_config("logging")
    if not parser.has_section("loggers"):
        return None
    return parser


def init_logging(loggername: str) -> Logger:
    """Return the "mlintegrity.<loggername>" logger

    The logging configuration file, when there is one, is applied on top of
    the defaults. A configuration that cannot be applied is reported and the
    defaults are restored.
    """
    logger = logging.getLogger(f"mlintegrity.{loggername}")

    logging_conf = _logging_config()
    if logging_conf is not None:
        try:
            logging_config.fileConfig(logging_conf, disable_existing_loggers=False)
        except Exception as e:
            logger.error("Logging configuration error: %s", e)
            logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)

    return logger
