from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError


class LostFoundError(Exception):
    """Base class for domain errors raised by the service layer."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Request could not be completed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.message
        super().__init__(self.detail)


class ValidationFailedError(LostFoundError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    message = "Validation Error"

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__(self.message)


class PermissionDeniedError(LostFoundError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Operation not permitted"


class NotFoundError(LostFoundError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class InvalidTransitionError(LostFoundError):
    status_code = status.HTTP_409_CONFLICT
    message = "Invalid status transition"


class ConflictError(LostFoundError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflicting request"


async def lost_found_exception_handler(request: Request, exc: LostFoundError):
    request_id = getattr(request.state, "request_id", None)
    if isinstance(exc, ValidationFailedError):
        content = {"detail": exc.errors, "message": exc.message, "request_id": request_id}
    else:
        content = {"detail": exc.detail, "request_id": request_id}
    return JSONResponse(status_code=exc.status_code, content=content)

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors()), "message": "Validation Error", "request_id": request_id},
    )

async def integrity_exception_handler(request: Request, exc: IntegrityError):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Database conflict. A record with this identifier likely already exists.", "request_id": request_id},
    )
