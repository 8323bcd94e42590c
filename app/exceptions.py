"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  Services raise domain-specific errors (like ReferentialConflictError)
  without importing HTTP concepts. The handlers registered here translate
  them into HTTP responses with a stable `error_type` code.

  This separation means:
    - Service code is testable without HTTP
    - Error responses are consistent across all endpoints
    - Adding new error types is straightforward

Exception hierarchy:
    BalanceTrackerError (base)
    ├── ValidationFailedError      — malformed input, all violations collected
    ├── NotFoundError              — absent, or owned by another user
    ├── DuplicateConstraintError   — unique name/code/IBAN collision
    │   └── DuplicateEmailError    — registering an email already in use
    ├── InvalidReferenceError      — unknown bank_id / account_id
    ├── ReferentialConflictError   — delete blocked by dependent rows
    ├── InvalidCredentialsError    — wrong email or password
    └── InvalidTokenError          — missing, expired or tampered JWT

NotFoundError is deliberately raised both for missing rows and for rows
owned by someone else, so one user cannot probe for another's data.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BalanceTrackerError(Exception):
    """Base exception for all Balance Tracker domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class ValidationFailedError(BalanceTrackerError):
    """
    Raised when input fails validation outside of request-body parsing.

    Attributes:
        errors: One dict per violation, e.g. {"field": "account_ids", "message": "..."}.
    """

    def __init__(self, errors: list[dict], detail: str = "Validation failed"):
        self.errors = errors
        super().__init__(detail)


class NotFoundError(BalanceTrackerError):
    """Raised when a resource does not exist or is not visible to the acting user."""

    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class DuplicateConstraintError(BalanceTrackerError):
    """Raised when a unique value (bank name/code, IBAN) is already taken."""

    def __init__(self, resource: str, field: str, value):
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"A {resource} with {field} '{value}' already exists")


class DuplicateEmailError(DuplicateConstraintError):
    """Raised when attempting to register with an email that's already in use."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("user", "email", email)
        self.detail = f"Email {email} is already registered"
        self.args = (self.detail,)


class InvalidReferenceError(BalanceTrackerError):
    """Raised when a foreign key in the request points at nothing the user can use."""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value} does not exist")


class ReferentialConflictError(BalanceTrackerError):
    """Raised when a delete is blocked by rows that still reference the target."""

    def __init__(self, detail: str):
        super().__init__(detail)


class InvalidCredentialsError(BalanceTrackerError):
    """Raised when login credentials are incorrect."""

    def __init__(self):
        super().__init__("Invalid email or password")


class InvalidTokenError(BalanceTrackerError):
    """Raised when a bearer token cannot be resolved to an active user."""

    def __init__(self):
        super().__init__("Could not validate credentials")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and a
    consistent JSON body: {"detail": "...", "error_type": "..."}

    This is called once from create_app() in main.py.
    """

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=jsonable_encoder({
                "detail": "Validation failed",
                "error_type": "validation_error",
                "errors": exc.errors(),
            }),
        )

    @app.exception_handler(ValidationFailedError)
    async def validation_failed_handler(
        request: Request, exc: ValidationFailedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": exc.detail,
                "error_type": "validation_error",
                "errors": exc.errors,
            },
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(
        request: Request, exc: NotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "not_found"},
        )

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email_handler(
        request: Request, exc: DuplicateEmailError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "duplicate_email"},
        )

    @app.exception_handler(DuplicateConstraintError)
    async def duplicate_constraint_handler(
        request: Request, exc: DuplicateConstraintError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,  # Conflict — the value is already taken
            content={
                "detail": exc.detail,
                "error_type": "duplicate",
                "field": exc.field,
            },
        )

    @app.exception_handler(InvalidReferenceError)
    async def invalid_reference_handler(
        request: Request, exc: InvalidReferenceError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": exc.detail,
                "error_type": "invalid_reference",
                "field": exc.field,
            },
        )

    @app.exception_handler(ReferentialConflictError)
    async def referential_conflict_handler(
        request: Request, exc: ReferentialConflictError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "referential_conflict"},
        )

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "invalid_credentials"},
        )

    @app.exception_handler(InvalidTokenError)
    async def invalid_token_handler(
        request: Request, exc: InvalidTokenError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "invalid_token"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
        )
        content = {"detail": "Internal server error", "error_type": "internal_error"}
        if settings.DEBUG:
            content["message"] = str(exc)
        return JSONResponse(status_code=500, content=content)
