"""Structured logging configuration with job_id propagation"""

import contextvars
import logging
import sys
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


# Context variable for job_id propagation
job_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "job_id", default=None
)


def add_job_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Add job_id to log entries from context variable

    Args:
        logger: The logger instance
        method_name: The logging method name
        event_dict: The event dictionary

    Returns:
        Updated event dictionary with job_id
    """
    job_id = job_id_var.get()
    if job_id:
        event_dict["job_id"] = job_id
    return event_dict


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structured logging with structlog

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_job_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Console format for development
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def new_job_id() -> str:
    """Generate a job identifier."""
    return f"job_{uuid4().hex[:12]}"


def set_job_id(job_id: Optional[str] = None) -> str:
    """
    Set job_id in context variable

    Each job runs in its own asyncio task, so the value set here is
    scoped to the task that set it.

    Args:
        job_id: Optional job ID, generates one if not provided

    Returns:
        The job_id that was set
    """
    if job_id is None:
        job_id = new_job_id()
    job_id_var.set(job_id)
    return job_id


def get_job_id() -> Optional[str]:
    """
    Get current job_id from context variable

    Returns:
        Current job_id or None
    """
    return job_id_var.get()


def clear_job_id() -> None:
    """Clear job_id from context variable"""
    job_id_var.set(None)
