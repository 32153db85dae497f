from typing import Any, Callable, Coroutine, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.responses import Response

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


class ServiceError(Exception):
    """Base class for outcomes reported to the caller as ``{"msg": ...}``."""

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationFailure(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class Unauthorized(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class NotFound(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class AcknowledgmentFailure(ServiceError):
    """Storage did not acknowledge a write."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class TransportFailure(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)


async def service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = (
        exc
        if isinstance(exc, ServiceError)
        else ServiceError(str(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    )
    return JSONResponse(status_code=error.status_code, content={"msg": error.message})


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, RequestValidationError) else RequestValidationError([])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"msg": "invalid request", "detail": jsonable_errors(error)},
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"msg": "something went wrong!!"},
    )


def jsonable_errors(error: RequestValidationError) -> list:
    # ctx may hold the raw exception object, which is not serializable
    return [{k: v for k, v in e.items() if k in ("type", "loc", "msg")} for e in error.errors()]


EXCEPTION_HANDLERS: Dict[type, ExceptionHandler] = {
    ServiceError: service_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: general_500_exception_handler,  # Catch-all for unhandled exceptions
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
