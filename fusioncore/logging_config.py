"""Structured logging configuration for the fusion pipeline."""

import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog


# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "getMessage", "exc_info", "exc_text",
    "stack_info", "taskName",
}


class StructuredFormatter(logging.Formatter):
    """Render each record as one JSON object, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        # Key/value context handed over by structlog arrives as record extras
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data.setdefault(key, value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    format: str = "json",
    level: str = "INFO",
    log_file: Optional[str] = None
) -> None:
    """Route structlog events through stdlib logging.

    Args:
        format: "json" for one JSON object per line, anything else for
            human-readable console lines
        level: Minimum level name; unknown names fall back to INFO
        log_file: Also append records to this file
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if format == "json":
        formatter = StructuredFormatter()
        renderer = structlog.stdlib.render_to_log_kwargs
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Left uncached so structlog.testing.capture_logs() can intercept
        cache_logger_on_first_use=False,
    )


def get_logger(name: str):
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**kwargs):
    """Context manager to add fields to all logs within the context.

    Example:
        with log_context(product_id="product-123"):
            logger.info("product_built")  # includes product_id
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
