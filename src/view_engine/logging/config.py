"""
Logging setup for the ``view_engine`` package logger.
"""
import os
import logging
import logging.handlers
from typing import List, Optional
from pathlib import Path
import json
from datetime import datetime, timezone

LOGGER_NAME = "view_engine"

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LogConfig:
    """
    Logging configuration for the engine.

    Only the package logger is configured; records do not propagate to the
    root logger of the host application.

    Example:
        LogConfig(log_level="DEBUG", log_file="logs/views.log").configure()
    """

    def __init__(
        self,
        log_level: str = 'INFO',
        log_file: Optional[str] = None,
        log_format: Optional[str] = None,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        json_logging: bool = False,
        handler: Optional[logging.Handler] = None
    ):
        """
        Initialize the logging configuration.

        Args:
            log_level: Logging level name
            log_file: Optional log file path, rotated by size
            log_format: Format string for plain text records
            max_bytes: Maximum size of the log file before rotation
            backup_count: Number of rotated files to keep
            json_logging: Emit one JSON object per record
            handler: Console handler replacing the default stream handler;
                it keeps its own formatter
        """
        self.log_level = getattr(logging, log_level.upper())
        self.log_file = log_file
        self.log_format = log_format or DEFAULT_FORMAT
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.json_logging = json_logging
        self.handler = handler

    @classmethod
    def from_settings(cls, settings, handler: Optional[logging.Handler] = None) -> 'LogConfig':
        """Build a log configuration from a RenderingConfiguration."""
        return cls(
            log_level=settings.log_level,
            log_file=str(settings.log_file) if settings.log_file else None,
            json_logging=settings.json_logging,
            handler=handler
        )

    def configure(self) -> logging.Logger:
        """
        Replace the handlers of the package logger.

        Returns:
            The configured package logger
        """
        package_logger = logging.getLogger(LOGGER_NAME)
        reset(package_logger)
        package_logger.setLevel(self.log_level)
        package_logger.propagate = False

        for handler in self._build_handlers():
            handler.setLevel(self.log_level)
            package_logger.addHandler(handler)

        return package_logger

    def _formatter(self) -> logging.Formatter:
        if self.json_logging:
            return JsonFormatter()
        return logging.Formatter(self.log_format)

    def _build_handlers(self) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []

        if self.handler is not None:
            handlers.append(self.handler)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(self._formatter())
            handlers.append(console_handler)

        if self.log_file:
            log_dir = os.path.dirname(self.log_file)
            if log_dir:
                Path(log_dir).mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                self.log_file,
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(self._formatter())
            handlers.append(file_handler)

        return handlers


def reset(package_logger: Optional[logging.Logger] = None) -> None:
    """Detach and close every handler of the package logger."""
    package_logger = package_logger or logging.getLogger(LOGGER_NAME)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string
        """
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        # Template name attached with ``extra={"template": ...}``
        template = getattr(record, 'template', None)
        if template is not None:
            log_data['template'] = template

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)
