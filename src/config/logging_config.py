"""
Logging configuration.

Console logging in a readable format for local development and structured
JSON lines everywhere else, so rate limit decisions can be filtered by
logger and level in the log pipeline.
"""

import json
import logging
import sys

from src.config.config import Config

logger = logging.getLogger(__name__)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Formats log records as JSON with any rate limit context passed through
    ``extra=``.
    """

    CONTEXT_FIELDS = ("limiter", "identity", "limit_type", "plan", "retry_after")

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: LogRecord to format

        Returns:
            str: JSON-formatted log entry
        """
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | None = None) -> None:
    """
    Configure application logging.

    Sets up:
    - Console handler on stdout
    - Plain format in development, JSON elsewhere
    - Quieter levels for noisy libraries
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level or Config.LOG_LEVEL)

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)

    if Config.IS_DEVELOPMENT:
        console_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        console_formatter = StructuredFormatter()

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger.info("Console logging configured (env=%s)", Config.APP_ENV)
