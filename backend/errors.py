from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import os
import traceback

logger = logging.getLogger(__name__)

APP_ENV = os.environ.get('APP_ENV', 'production')


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class PaymentGatewayError(ServiceError):
    status_code = 502


class UploadError(ServiceError):
    status_code = 502


def error_envelope(status: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message, "status": status}
    body.update(extra)
    return JSONResponse(status_code=status, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} Not Found"
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {message}")
    return error_envelope(exc.status_code, message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(location) or "body",
            "message": error.get("msg", "Invalid input"),
        })
    logger.warning(f"{request.method} {request.url.path} -> 400: validation failed {errors}")
    return error_envelope(400, "Validation failed", errors=errors)


async def service_error_handler(request: Request, exc: ServiceError):
    logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_envelope(exc.status_code, exc.message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} -> 500: {exc}")
    if APP_ENV == "development":
        return error_envelope(500, str(exc) or "Something went wrong", stack=traceback.format_exc())
    return error_envelope(500, "Something went wrong")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
