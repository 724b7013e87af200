"""
Custom error classes with structured logging and error propagation.

All errors include correlation context and structured data for observability.
"""

from typing import Optional, Dict, Any
from resonance.common.logging import get_logger
from resonance.common.logging.correlation import get_correlation_id, get_user_id, get_job_id

logger = get_logger(__name__)


class ResonanceError(Exception):
    """
    Base error class for all engine errors.

    Automatically logs errors with correlation context when raised.
    """

    #: Whether the caller may retry the same request unchanged
    retryable: bool = False

    #: Level used when the error logs itself
    log_level: str = "error"

    def __init__(
        self,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize error with structured context.

        Args:
            message: Human-readable error message
            data: Structured data for observability
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.data = data or {}
        self.cause = cause

        self.correlation_id = get_correlation_id()
        self.user_id = get_user_id()
        self.job_id = get_job_id()

        self._log_error()

    def _log_error(self):
        """Log error with structured data."""
        log_data = {
            "error_type": self.__class__.__name__,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "job_id": self.job_id,
            "retryable": self.retryable,
            **self.data,
        }

        if self.cause:
            log_data["cause"] = str(self.cause)

        if self.log_level == "warning":
            logger.warning(self.message, data=log_data)
        else:
            logger.error(self.message, data=log_data, exc_info=self.cause is not None)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "retryable": self.retryable,
            "data": self.data,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "job_id": self.job_id,
            "cause": str(self.cause) if self.cause else None,
        }


# Validation errors: surfaced immediately, never retried
class ValidationError(ResonanceError):
    """Error validating input data."""
    pass


class InvalidWeightsError(ValidationError):
    """Weight triple is negative or does not sum to 1.0 within tolerance."""
    pass


class InvalidLimitError(ValidationError):
    """Result limit is zero or negative."""
    pass


class DimensionMismatchError(ValidationError):
    """Two compared embeddings differ in length."""
    pass


# Lookup errors
class TrackNotFoundError(ResonanceError):
    """Reference track (or the signal needed for a method) does not exist."""

    log_level = "warning"


# Backend errors
class ExternalServiceError(ResonanceError):
    """Error communicating with an external backend."""
    pass


class QueryTimeoutError(ExternalServiceError):
    """Similarity query exceeded its time budget and was cancelled."""

    retryable = True


class StoreUnavailableError(ExternalServiceError):
    """Catalog store or history provider could not be reached."""
    pass


class CacheUnavailableError(ExternalServiceError):
    """Cache backend could not be reached. Never surfaced to callers."""

    retryable = True
    log_level = "warning"


# Configuration errors
class ConfigurationError(ResonanceError):
    """Error in configuration."""
    pass
