"""JSON error responses for the file API."""

import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from filevault.errors import FilevaultError
from filevault.errors import InvalidRequest


logger = logging.getLogger(__name__)


def error_response(exc: FilevaultError) -> JSONResponse:
    return JSONResponse(content=exc.to_dict(), status_code=exc.status_code)


async def filevault_error_handler(request: Request, exc: FilevaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed with {exc.kind}: {exc.message}",
            exc_info=exc,
        )
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
    return error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return error_response(InvalidRequest(details or "Invalid request"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FilevaultError, filevault_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
