"""
Exception handlers: every error response carries {"error_code", "message"}
under "detail", and nothing unexpected leaks past a localized message.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ptstudio.messages import get_message, translate_validation, UNKNOWN_ERROR

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    parts = []
    for e in exc.errors():
        field = e["loc"][-1] if e.get("loc") else ""
        translated = translate_validation(e["msg"])
        parts.append(f"{field}: {translated}" if field and field != "__root__" else translated)
    return JSONResponse(
        status_code=422,
        content={"detail": {"error_code": "VALIDATION_ERROR", "message": "; ".join(parts)}},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error_code": UNKNOWN_ERROR, "message": get_message(UNKNOWN_ERROR)}},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
