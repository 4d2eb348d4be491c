# bentamate/api/errors.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bentamate.core.errors import (
    AuthError,
    BackendError,
    BentaMateError,
    NetworkError,
    NotFoundError,
    StorageIOError,
    ValidationError,
)

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthError, 401),
    (NotFoundError, 404),
    (BackendError, 502),
    (NetworkError, 503),
    (StorageIOError, 503),
)


def status_for(exc: BentaMateError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def bentamate_error_handler(request: Request, exc: BentaMateError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"error": exc.category, "code": exc.code, "message": exc.message},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BentaMateError, bentamate_error_handler)
