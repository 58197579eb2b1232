"""Structured logging for the query service (structlog over stdlib logging)."""

import sys
import structlog
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from constants import SERVICE_NAME
from core.config import Settings

if TYPE_CHECKING:
    from services.optimization.models import QueryMetrics

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "google.auth",
    "google.api_core",
    "grpc",
    "urllib3",
)

# Derived cache keys embed the whole filter map; keep log lines bounded
MAX_LOGGED_KEY_LENGTH = 200


def _handlers(settings: Settings, level: int) -> List[logging.Handler]:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    handlers: List[logging.Handler] = [console_handler]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        handlers.append(file_handler)

    return handlers


def add_service_name(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag every JSON log line with the service name for log aggregation."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(settings: Settings) -> None:
    """Configure structured logging based on settings.

    LOG_FORMAT=json renders one JSON object per line; anything else uses the
    plain console renderer. LOG_FILE adds a file handler next to stdout.
    """
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        level=level,
        handlers=_handlers(settings, level),
        format="%(message)s",
    )

    quiet_level = max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors[:0] = [
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service_name,
        ]
        # default=str covers datetimes and enums inside filter maps
        processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def shorten_key(key: str) -> str:
    if len(key) <= MAX_LOGGED_KEY_LENGTH:
        return key
    return f"{key[:MAX_LOGGED_KEY_LENGTH]}...(+{len(key) - MAX_LOGGED_KEY_LENGTH})"


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    """Log wall time of an operation measured with time.perf_counter()."""
    logger.info(
        "Operation completed",
        operation=operation,
        execution_time_ms=round((end_time - start_time) * 1000, 2),
        **kwargs
    )


def log_query_metrics(logger: structlog.BoundLogger, collection: str,
                      cache_key: str, metrics: "QueryMetrics") -> None:
    """Log an executed (non-cached) optimized query with its metrics."""
    logger.debug(
        "Optimized query executed",
        collection=collection,
        cache_key=shorten_key(cache_key),
        **metrics.to_dict()
    )


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Log cache operations at debug level."""
    log_data = {
        "operation": operation,
        "cache_key": shorten_key(key),
        **kwargs
    }

    if hit is not None:
        log_data["cache_hit"] = hit

    logger.debug("Cache operation", **log_data)
