import enum
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(enum.StrEnum):
    """Machine-readable error taxonomy shared by every endpoint."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_ROLE = "INVALID_ROLE"
    CONFLICT = "CONFLICT"
    ALREADY_DECIDED = "ALREADY_DECIDED"
    STALE_STEP = "STALE_STEP"
    INTERNAL = "INTERNAL"


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    kind: ErrorKind
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        super().__init__(self.message)


class ValidationFailed(AppError):
    """Malformed or contradictory request or rule fields."""

    kind = ErrorKind.VALIDATION
    default_status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """A referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(AppError):
    """The actor is not authorized for this step or resource."""

    kind = ErrorKind.FORBIDDEN
    default_status_code = status.HTTP_403_FORBIDDEN


class InvalidRoleError(AppError):
    """A configured approver does not hold an approving role."""

    kind = ErrorKind.INVALID_ROLE
    default_status_code = status.HTTP_403_FORBIDDEN


class ConflictError(AppError):
    """Duplicate step order or a clashing write."""

    kind = ErrorKind.CONFLICT
    default_status_code = status.HTTP_409_CONFLICT


class AlreadyDecidedError(AppError):
    """The step or expense has already reached a decision."""

    kind = ErrorKind.ALREADY_DECIDED
    default_status_code = status.HTTP_409_CONFLICT


class StaleStepError(AppError):
    """The caller targeted a step the expense has already moved past."""

    kind = ErrorKind.STALE_STEP
    default_status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    """Persistence or invariant failure inside the engine."""

    kind = ErrorKind.INTERNAL
    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            kind=exc.kind,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(mode="json"),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            kind=ErrorKind.VALIDATION,
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(mode="json"),
    )


async def _database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=InternalError.__name__,
            kind=ErrorKind.INTERNAL,
            detail="Persistence failure",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(mode="json"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _database_exception_handler)  # type: ignore[arg-type]
