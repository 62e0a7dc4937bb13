"""Map domain errors onto JSON HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from libs.common.errors import ServiceError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def _error_body(code: str, detail: str, retryable: bool) -> dict:
    return {
        "detail": detail,
        "code": code,
        "retryable": retryable,
        "request_id": get_request_id(),
    }


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.retryable),
    )


async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content=_error_body("conflict", "Conflicting concurrent update", True),
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register domain error handlers on a service app."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
