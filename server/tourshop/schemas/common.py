"""Common Pydantic schemas."""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

CURRENCY_PATTERN = r"^[A-Z]{3}$"


class Money(BaseModel):
    """Amount in minor units of an ISO 4217 currency."""

    amount: int = Field(..., ge=0, description="Amount in minor units (e.g., cents)")
    currency: str = Field(..., min_length=3, max_length=3, pattern=CURRENCY_PATTERN, description="ISO 4217 currency code")


class Violation(BaseModel):
    """One invalid field."""

    path: str = Field(..., description="Dotted path to the invalid field, e.g. travelers.0.email")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response body."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="Request path that produced the problem")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether repeating the request may succeed")
    step: Optional[str] = Field(None, description="Checkout step the violations belong to")
    attempts_left: Optional[int] = Field(None, description="Remaining verification attempts")
    conflicting_resource: Optional[dict[str, Any]] = Field(None, description="State that caused a conflict")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


def problem_responses(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    """OpenAPI ``responses`` entries documenting Problem bodies for the given statuses."""
    return {
        code: {"model": Problem, "content": {"application/problem+json": {}}}
        for code in status_codes
    }


class PaginatedResponse(BaseModel):
    """Base class for paginated responses."""

    next_cursor: Optional[str] = Field(None, description="Cursor for next page")
