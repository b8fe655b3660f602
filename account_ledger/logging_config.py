"""
Structured Logging Configuration Module

Ledger loggers live under the ``account_ledger`` namespace. Records emitted
through log_action carry the ledger fields (action, resource, holder and a
free-form extra dict) which JSONFormatter writes as top-level keys.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


ROOT_LOGGER_NAME = "account_ledger"
TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"
STRUCTURED_FIELDS = ("action", "resource", "holder", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json",
                  logger_name: str = ROOT_LOGGER_NAME,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach a single handler to the ledger logger.

    Logs go to stderr unless log_file is given, so console output on stdout
    stays clean.

    Args:
        level: Log level name
        fmt: "json" or "text"
        logger_name: Logger to configure
        log_file: Append to this file instead of stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    if fmt == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    else:
        handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, resource: Optional[str] = None,
               holder: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log a ledger event with its structured fields.

    The record is attributed to the caller, not to this helper.
    """
    fields = {"action": action, "resource": resource, "holder": holder, "extra": extra}
    logger.log(
        getattr(logging, level.upper()),
        message,
        extra={k: v for k, v in fields.items() if v},
        stacklevel=2,
    )
