"""
structlog configuration: JSON lines on stdout, shared by the API and the worker.
"""

import logging
import sys

import structlog

QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "uvicorn.access")


def _tag_job_events(logger, method_name: str, event_dict: dict) -> dict:
    # Background job entries carry job_run; mark them so they filter apart from requests
    if "job_run" in event_dict:
        event_dict.setdefault("source", "job")
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _tag_job_events,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    """One line per HTTP request; 4xx/5xx at warning level."""
    log = get_logger("fintrack.http")
    fields = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }
    if status_code >= 400:
        log.warning("HTTP request failed", **fields)
    else:
        log.info("HTTP request completed", **fields)
