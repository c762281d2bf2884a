"""
Logging configuration for the MDB coin changer.

Handlers are attached once to the "mdb_changer" package logger; module
loggers created with logging.getLogger(__name__) propagate to it.
Records go to a colored console, a size-rotated file and, when enabled
in configs, Grafana Loki.
"""

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Final

import colorlog
import httpx

from mdb_changer.configs import LOG_FILE, LOKI_ENABLED, LOKI_URL


LOGGER_NAME: Final[str] = "mdb_changer"

LOG_FORMAT: Final[str] = "%(name)s | %(asctime)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
MAX_LOG_FILE_SIZE: Final[int] = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT: Final[int] = 3
LOKI_TIMEOUT: Final[float] = 2.0

LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


def loki_payload(labels: dict[str, str], message: str) -> dict[str, Any]:
    """Build a Loki push request with one entry stamped now (ns)."""
    return {
        "streams": [
            {
                "stream": labels,
                "values": [[str(time.time_ns()), message]],
            }
        ]
    }


class LokiHandler(logging.Handler):
    """
    Logging handler pushing records to Loki.

    Each record becomes one stream entry labelled with the application,
    level and logger name. Push failures go through handleError so they
    never recurse into logging.
    """

    def __init__(self, app: str, url: str = LOKI_URL) -> None:
        super().__init__()
        self.app = app
        self.url = url
        self._client = httpx.Client(timeout=LOKI_TIMEOUT)

    def emit(self, record: logging.LogRecord) -> None:
        labels = {
            "app": self.app,
            "level": record.levelname.lower(),
            "logger": record.name,
        }
        try:
            response = self._client.post(self.url, json=loki_payload(labels, self.format(record)))
            response.raise_for_status()
        except httpx.HTTPError:
            self.handleError(record)

    def close(self) -> None:
        self._client.close()
        super().close()


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(name)s | %(log_color)s%(asctime)s | %(levelname)s | "
        "%(funcName)s:%(lineno)d | %(message)s",
        datefmt=DATE_FORMAT,
        log_colors=LOG_COLORS,
    ))
    return handler


def _file_handler(log_file: str, level: int) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_LOG_FILE_SIZE,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def get_logger(
    name: str = LOGGER_NAME,
    app: str = "mdb_changer",
    log_file: str = LOG_FILE,
    level: int = logging.DEBUG,
    loki: bool = LOKI_ENABLED,
) -> logging.Logger:
    """
    Configure a logger with console, file and (optionally) Loki handlers.

    Calling it again for a configured logger returns it unchanged.

    Args:
        name: Logger name; module loggers below it share its handlers.
        app: Application label for Loki.
        log_file: Path to the rotated log file.
        level: Logging level.
        loki: Whether to push records to Loki.

    Returns:
        The configured logger.
    """
    configured = logging.getLogger(name)
    configured.setLevel(level)
    if configured.handlers:
        return configured

    configured.addHandler(_console_handler(level))
    configured.addHandler(_file_handler(log_file, level))

    if loki:
        loki_handler = LokiHandler(app)
        loki_handler.setLevel(level)
        loki_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        configured.addHandler(loki_handler)

    return configured


logger = get_logger()
