"""Domain error classes.

Protocol-agnostic errors that represent catalog failures.
These errors are translated to appropriate formats (HTTP, UI state) by adapters
and by the listing controller.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain errors.

    Protocol-agnostic. Contains error information that can be translated
    to an HTTP response or to an inline UI error message.
    """

    # Default error code (can be used as i18n key)
    error_code: str = "DOMAIN_ERROR"
    retryable: bool = False

    def __init__(self, message: str, **context: Any) -> None:
        """Create a domain error.

        Args:
            message: Human-readable error message (default locale)
            **context: Additional context for error (e.g., field names, values)
        """
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to structured format for protocol translation."""
        return {
            "message": self.message,
            "code": self.error_code,
            **self.context,
        }


class ValidationError(DomainError):
    """Filter or paging validation error.

    Examples:
        - year range with min > max
        - limit outside the allowed window
        - sort key that is not part of SortKey

    Protocol mappings:
        - REST: 422 Unprocessable Entity
        - Listing URL decode: dropped silently, never surfaced
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, str]] | None = None,
        **context: Any,
    ) -> None:
        """Create a validation error.

        Args:
            message: Overall validation error message (optional if errors provided)
            errors: List of field-specific errors, each with 'field' and 'message'
                   Example: [{"field": "anio", "message": "min must be <= max"}]
            **context: Additional context
        """
        self.errors: list[dict[str, str]] | None
        if errors:
            self.errors = errors
            msg = message or "Validation failed"
        else:
            self.errors = None
            msg = message or "Validation error"

        super().__init__(msg, **context)

    def to_dict(self) -> dict[str, Any]:
        """Convert to structured format."""
        if self.errors:
            return {
                "message": self.message,
                "code": self.error_code,
                "errors": self.errors,
                **self.context,
            }
        return super().to_dict()


class FilterValidationError(ValidationError):
    """Raised when a filter value is invalid."""

    pass


class PagingValidationError(ValidationError):
    """Raised when limit or cursor parameters are invalid."""

    pass


class NotFoundError(DomainError):
    """Resource not found.

    Examples:
        - Vehicle with ID not found upstream

    Protocol mappings:
        - REST: 404 Not Found
    """

    error_code: str = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str | None = None, **context: Any) -> None:
        """Create a not found error.

        Args:
            resource: Type of resource (e.g., "Vehicle")
            identifier: Resource identifier
            **context: Additional context
        """
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"

        super().__init__(message, resource=resource, identifier=identifier, **context)


class NetworkError(DomainError):
    """The search backend could not be reached or answered with an error.

    Retryable. Previously loaded vehicles stay visible.

    Protocol mappings:
        - REST: 502 Bad Gateway
        - Listing UI: inline message plus retry action
    """

    error_code: str = "NETWORK_ERROR"
    retryable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retryable": self.retryable}


class FetchTimeoutError(NetworkError):
    """A fetch exceeded its time budget.

    Protocol mappings:
        - REST: 504 Gateway Timeout
    """

    error_code: str = "UPSTREAM_TIMEOUT"

    def __init__(self, timeout_seconds: float, **context: Any) -> None:
        super().__init__(
            f"Request timeout: {timeout_seconds:g}s",
            timeout_seconds=timeout_seconds,
            **context,
        )


class MappingError(DomainError):
    """A backend page could not be normalized.

    Never propagated: the page mapper logs it and returns an empty page.
    """

    error_code: str = "MAPPING_ERROR"


class InternalError(DomainError):
    """Internal error (unexpected conditions).

    Should be logged for investigation.

    Protocol mappings:
        - REST: 500 Internal Server Error
    """

    error_code: str = "INTERNAL_ERROR"
