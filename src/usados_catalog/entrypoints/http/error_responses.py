"""REST API error response models.

Structured error responses that provide consistent format for all HTTP errors.
"""

from pydantic import BaseModel, ConfigDict


class ErrorDetail(BaseModel):
    """Individual error detail for field-level errors.

    Used in validation errors to indicate which field failed and why.
    """

    field: str
    message: str
    code: str | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "field": "limit",
                "message": "Must be between 1 and 200",
                "code": "OUT_OF_RANGE",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Structured error response format.

    Supports:
    - Simple errors (just detail and code)
    - Upstream errors flagged as retryable
    - Multi-field validation errors (detail + errors array)

    Examples:
        Simple error:
            {
                "detail": "Vehicle with identifier 'abc' not found",
                "code": "NOT_FOUND"
            }

        Upstream error:
            {
                "detail": "Request timeout: 15s",
                "code": "UPSTREAM_TIMEOUT",
                "retryable": true
            }
    """

    detail: str
    code: str | None = None
    retryable: bool | None = None
    errors: list[ErrorDetail] | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"detail": "Vehicle with identifier 'abc' not found", "code": "NOT_FOUND"},
                {"detail": "Search API is unreachable", "code": "NETWORK_ERROR", "retryable": True},
                {
                    "detail": "Validation failed",
                    "code": "VALIDATION_ERROR",
                    "errors": [
                        {
                            "field": "limit",
                            "message": "Must be between 1 and 200",
                            "code": "OUT_OF_RANGE",
                        }
                    ],
                },
            ]
        }
    )
