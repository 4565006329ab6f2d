"""Logging for flash_bundle.

Bundle operations attach context (operation, archive path, entry key) to
their log records through LogContext. The formatters here render that
context, and configure_logging installs them on the package logger from
a LoggingConfig.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .logging_config import LoggingConfig

PACKAGE_LOGGER = "flash_bundle"

# Record attribute carrying the fields set by LogContext
CONTEXT_ATTR = "bundle_context"

TEXT_FORMATS = {
    "simple": "%(levelname)-8s | %(name)s | %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
}


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, CONTEXT_ATTR, None) or {}


class ContextFormatter(logging.Formatter):
    """Text formatter that appends bundle context, e.g. ``[operation=replace key=a.swf]``."""

    def __init__(self, style: str = "simple") -> None:
        super().__init__(fmt=TEXT_FORMATS[style], datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        context = record_context(record)
        if context:
            fields = " ".join(f"{name}={value}" for name, value in context.items())
            text = f"{text} [{fields}]"
        return text


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Bundle context goes under ``bundle``. For exceptions carrying a
    ``context`` dict (BundleError and subclasses) it is kept under
    ``error.context`` along with the chained cause.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = record_context(record)
        if context:
            entry["bundle"] = dict(context)

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["error"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": self.formatException(record.exc_info),
            }
            if getattr(error, "context", None):
                entry["error"]["context"] = error.context
            if error.__cause__ is not None:
                entry["error"]["cause"] = f"{type(error.__cause__).__name__}: {error.__cause__}"

        return json.dumps(entry, default=str)


def _formatter_for(config: LoggingConfig) -> logging.Formatter:
    if config.format == "json":
        return JsonFormatter()
    return ContextFormatter(config.format)


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Install console (and optional rotating file) handlers on the package logger.

    Handlers installed by an earlier call are replaced, so calling this
    again with a new config does not duplicate output. Handlers added by
    the host application are left alone.

    Returns:
        The ``flash_bundle`` logger
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(config.level)

    for handler in list(logger.handlers):
        if getattr(handler, "_flash_bundle_handler", False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_formatter_for(config))
    handlers = [console_handler]

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        # File logs are always structured
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler._flash_bundle_handler = True
        logger.addHandler(handler)

    return logger


class LogContext:
    """Attach bundle context fields to every record logged inside the block.

    Nested contexts merge, inner fields winning.
    """

    def __init__(self, logger: logging.Logger, **fields: Any) -> None:
        self.logger = logger
        self.fields = fields
        self.old_factory = None

    def __enter__(self) -> "LogContext":
        self.old_factory = logging.getLogRecordFactory()

        def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = self.old_factory(*args, **kwargs)
            setattr(record, CONTEXT_ATTR, {**record_context(record), **self.fields})
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        logging.setLogRecordFactory(self.old_factory)
