"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .database import utcnow

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://tourshop.example/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[list[dict[str, str]]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authorization credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authorization Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authorization-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_roles: Optional[list[str]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_roles:
            extensions["required_roles"] = required_roles

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            instance=instance,
            extensions={
                "error_id": error_id or str(uuid.uuid4()),
                "timestamp": utcnow().isoformat(),
            },
        )


# Business logic exceptions

class DepartureUnavailableError(ProblemDetailsException):
    """Departure is not bookable for the requested number of travellers."""

    def __init__(self, departure_id: str, status: str, available_spaces: int, requested: int):
        super().__init__(
            status_code=409,
            title="Departure Unavailable",
            detail=(
                f"Departure {departure_id} cannot take {requested} traveller(s) "
                f"(status: {status}, spaces: {available_spaces})"
            ),
            type_uri=f"{PROBLEM_BASE_URI}/departure-unavailable",
            extensions={
                "code": "DEPARTURE_UNAVAILABLE",
                "retryable": False,
                "departure_id": departure_id,
                "departure_status": status,
                "available_spaces": available_spaces,
                "requested_spaces": requested,
            },
        )


class CheckoutStepError(ProblemDetailsException):
    """Checkout step data failed validation."""

    def __init__(self, step: str, violations: list[dict[str, str]], detail: Optional[str] = None):
        super().__init__(
            status_code=422,
            title="Checkout Step Invalid",
            detail=detail or f"Step {step} could not be completed",
            type_uri=f"{PROBLEM_BASE_URI}/checkout-step-invalid",
            extensions={
                "code": "CHECKOUT_STEP_INVALID",
                "retryable": False,
                "step": step,
                "violations": violations,
            },
        )


class CheckoutIncompleteError(ProblemDetailsException):
    """Checkout session is not ready to be paid for."""

    def __init__(self, session_id: str, detail: str):
        super().__init__(
            status_code=409,
            title="Checkout Incomplete",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/checkout-incomplete",
            extensions={
                "code": "CHECKOUT_INCOMPLETE",
                "retryable": False,
                "checkout_session_id": session_id,
            },
        )


class PaymentDeclinedError(ProblemDetailsException):
    """The payment processor refused the charge."""

    def __init__(self, order_id: str, reason: str):
        super().__init__(
            status_code=402,
            title="Payment Declined",
            detail=f"Payment for order {order_id} was declined: {reason}",
            type_uri=f"{PROBLEM_BASE_URI}/payment-declined",
            extensions={
                "code": "PAYMENT_DECLINED",
                "retryable": False,
                "order_id": order_id,
                "reason": reason,
            },
        )


class PaymentGatewayError(ProblemDetailsException):
    """The payment processor could not be reached or failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            status_code=502,
            title="Payment Gateway Error",
            detail=f"Payment processor failed during {operation}: {reason}",
            type_uri=f"{PROBLEM_BASE_URI}/payment-gateway-error",
            extensions={
                "code": "PAYMENT_GATEWAY_ERROR",
                "retryable": True,
                "operation": operation,
            },
        )


class OtpInvalidError(ProblemDetailsException):
    """Submitted one-time password does not match."""

    def __init__(self, attempts_left: int):
        super().__init__(
            status_code=401,
            title="Invalid Verification Code",
            detail="The verification code is incorrect",
            type_uri=f"{PROBLEM_BASE_URI}/otp-invalid",
            extensions={
                "code": "OTP_INVALID",
                "retryable": attempts_left > 0,
                "attempts_left": attempts_left,
            },
        )


class OtpExpiredError(ProblemDetailsException):
    """One-time password is past its lifetime."""

    def __init__(self):
        super().__init__(
            status_code=410,
            title="Verification Code Expired",
            detail="The verification code has expired, request a new one",
            type_uri=f"{PROBLEM_BASE_URI}/otp-expired",
            extensions={"code": "OTP_EXPIRED", "retryable": False},
        )


class OtpAttemptsExceededError(ProblemDetailsException):
    """Too many wrong guesses for a one-time password."""

    def __init__(self, max_attempts: int):
        super().__init__(
            status_code=429,
            title="Too Many Attempts",
            detail=f"The verification code was entered incorrectly {max_attempts} times",
            type_uri=f"{PROBLEM_BASE_URI}/otp-attempts-exceeded",
            extensions={
                "code": "OTP_ATTEMPTS_EXCEEDED",
                "retryable": False,
                "max_attempts": max_attempts,
            },
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as a 422 Problem with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/request-validation-error",
            "title": "Request Validation Error",
            "status": 422,
            "detail": "The request body or parameters failed validation",
            "instance": request.url.path,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())
    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "type": f"{PROBLEM_BASE_URI}/internal-server-error",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred while processing the request",
            "instance": str(request.url),
            "error_id": error_id,
            "timestamp": utcnow().isoformat(),
        },
        media_type="application/problem+json",
    )
