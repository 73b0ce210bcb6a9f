"""Structured logging: readable console output plus JSON log files."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from pythonjsonlogger import jsonlogger

from src.config import settings

SERVICE_NAME = "catalog-mirror"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Libraries whose DEBUG output drowns the crawl logs
QUIET_LOGGERS = ("sqlalchemy.engine", "asyncio", "aiosqlite", "httpx")


class CatalogJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record; bound crawl context arrives via `extra`."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = SERVICE_NAME
        log_record['source'] = f"{record.filename}:{record.lineno}"
        if record.funcName:
            log_record['function'] = record.funcName


def _json_file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(CatalogJsonFormatter(JSON_FORMAT))
    return handler


def setup_logging(base_dir: str | Path | None = None):
    """Configure the root logger.

    Writes everything to logs/app.log and errors to logs/error.log, both as
    JSON lines, and mirrors records to stdout in plain text.

    Args:
        base_dir: Directory to create logs/ in; defaults to the working directory.
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_json_file_handler(logs_dir / "app.log", logging.DEBUG))
    root_logger.addHandler(_json_file_handler(logs_dir / "error.log", logging.ERROR))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that merges its bound context into every record's extra."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Logger bound to crawl context.

    Args:
        name: Logger name (usually __name__)
        **context: Fields attached to every record (e.g. category_id=12, url='...')
    """
    return LoggerAdapter(logging.getLogger(name), context)
