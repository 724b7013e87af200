"""Logging utilities for the similarity and taste engine."""

from .logger import setup_logging, get_logger
from .logging_config import LoggingConfig, get_logging_config
from .formatters import JSONFormatter, StructuredLogAdapter
from .correlation import (
    CorrelationLogFilter,
    request_context,
    get_correlation_id,
    set_correlation_id,
    get_user_id,
    set_user_id,
    get_job_id,
    set_job_id,
)

__all__ = [
    # Logger
    'setup_logging',
    'get_logger',
    # Logging config
    'LoggingConfig',
    'get_logging_config',
    # Structured logging
    'JSONFormatter',
    'StructuredLogAdapter',
    # Correlation
    'CorrelationLogFilter',
    'request_context',
    'get_correlation_id',
    'set_correlation_id',
    'get_user_id',
    'set_user_id',
    'get_job_id',
    'set_job_id',
]
