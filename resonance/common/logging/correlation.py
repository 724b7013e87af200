"""Correlation context for request and job tracing."""

import uuid
import logging
import contextvars
from contextlib import contextmanager
from typing import Iterator, Optional


# Context variable for correlation ID (thread-safe, async-safe)
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Context variable for user ID
user_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_id", default=None
)

# Context variable for job ID
job_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)


def generate_correlation_id() -> str:
    """Generate unique correlation ID."""
    return str(uuid.uuid4())[:8]


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str):
    """Set correlation ID in context."""
    correlation_id_var.set(cid)


def get_user_id() -> str | None:
    """Get current user ID from context."""
    return user_id_var.get()


def set_user_id(uid: str):
    """Set user ID in context."""
    user_id_var.set(uid)


def get_job_id() -> str | None:
    """Get current job ID from context."""
    return job_id_var.get()


def set_job_id(jid: str):
    """Set job ID in context."""
    job_id_var.set(jid)


@contextmanager
def request_context(
    user_id: Optional[str] = None,
    job_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> Iterator[str]:
    """
    Bind correlation, user and job IDs for the duration of a block.

    Callers and worker jobs wrap their engine calls in this so every log
    line and error carries the same IDs.

    Yields:
        The correlation ID in effect
    """
    cid = correlation_id or generate_correlation_id()
    tokens = [
        (correlation_id_var, correlation_id_var.set(cid)),
        (user_id_var, user_id_var.set(user_id)),
        (job_id_var, job_id_var.set(job_id)),
    ]
    try:
        yield cid
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class CorrelationLogFilter(logging.Filter):
    """
    Logging filter that adds correlation_id, user_id, job_id to log records.

    Use with standard logging to auto-inject context vars.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.user_id = get_user_id()
        record.job_id = get_job_id()
        return True
