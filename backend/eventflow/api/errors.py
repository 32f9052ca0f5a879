"""
Maps coordinator failures onto HTTP responses.

Business errors keep their own message. Internal errors were already logged
with full context where they happened and go out with a generic message.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from eventflow.core.errors import BookingError, ErrorKind, InternalError
from eventflow.core.logging import get_logger

logger = get_logger(__name__)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.kind == ErrorKind.INTERNAL:
        logger.error("request_failed", code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": InternalError.public_message,
            "code": InternalError.code,
            "kind": ErrorKind.INTERNAL.value,
        },
    )


EXCEPTION_HANDLERS = {
    BookingError: booking_error_handler,
    Exception: unhandled_exception_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
