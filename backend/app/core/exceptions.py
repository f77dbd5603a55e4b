"""
Domain errors and their safe HTTP translation.

Services raise the MediTrackError family without knowing about HTTP.
Routes convert them with `to_http_exception`, which goes through the
BusinessError factories so the messages users see stay generic where
they must (server errors) and specific where the user can act on them
(validation, conflicts).

NotFound is kept distinct from PermissionDenied: the verification UI
shows "possible counterfeit" for an unknown code, never a generic error.
"""
from typing import Optional

from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class MediTrackError(Exception):
    """Base class for domain errors raised by services."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(MediTrackError):
    pass


class DrugNotFound(NotFoundError):
    def __init__(self, reference):
        super().__init__(f"Drug {reference} not found")
        self.reference = reference


class AlertNotFound(NotFoundError):
    def __init__(self, alert_id):
        super().__init__(f"Alert {alert_id} not found")
        self.alert_id = alert_id


class ValidationError(MediTrackError):
    """Malformed input. Recoverable by the user correcting `field`."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class ConflictError(MediTrackError):
    """Stored state no longer matches what the caller observed. Retry after reloading."""

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InvalidTransition(ConflictError):
    """Transition is not legal from the stored status."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move drug from '{current}' to '{target}'", expected=None, actual=current)
        self.current = current
        self.target = target


class PermissionDenied(MediTrackError):
    pass


class UpstreamUnavailable(MediTrackError):
    """LLM gateway failed. Always recovered locally with templated text."""


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        if reason:
            logger.info(f"Not found: {resource} - {reason}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        Same response for wrong password and non-existent user.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def forbidden(reason: str = "", detail: str = "Access denied") -> HTTPException:
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input errors the user caused.
        Examples: "Email already registered", "Password too short"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def unprocessable(field: str, message: str) -> HTTPException:
        logger.info(f"Validation failed: {field} - {message}")
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"loc": ["body", field], "msg": message, "type": "value_error"}],
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """
        409 for state conflicts. The client should reload and retry.
        """
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )

    @staticmethod
    def rate_limit_exceeded(detail: str = "Too many requests") -> HTTPException:
        logger.warning(f"Rate limit exceeded: {detail}")
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
        )


def to_http_exception(exc: MediTrackError) -> HTTPException:
    """Map a domain error onto the matching BusinessError response."""
    if isinstance(exc, DrugNotFound):
        return BusinessError.not_found("Drug", reason=exc.message)
    if isinstance(exc, AlertNotFound):
        return BusinessError.not_found("Alert", reason=exc.message)
    if isinstance(exc, NotFoundError):
        return BusinessError.not_found(reason=exc.message)
    if isinstance(exc, ValidationError):
        return BusinessError.unprocessable(exc.field, exc.message)
    if isinstance(exc, ConflictError):
        return BusinessError.conflict(exc.message)
    if isinstance(exc, PermissionDenied):
        return BusinessError.forbidden(reason=exc.message, detail=exc.message or "Access denied")
    return BusinessError.server_error(exc)
