
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from roomgate.core.exceptions import BaseAPIException, ValidationException

async def custom_exception_handler(request: Request, exc: BaseAPIException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "kind": exc.kind,
            "message": exc.detail,
            "retryable": exc.retryable,
        },
        headers=exc.headers,
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render FastAPI's request validation failures with the same error shape."""
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "kind": ValidationException.kind,
            "message": "; ".join(problems) or "Input data validation failed",
            "retryable": False,
        },
    )
