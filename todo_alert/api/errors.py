from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException


def _error_body(request: Request, status_code: int, error: str) -> dict:
    body = {"error": error, "status": status_code, "path": request.url.path}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["request_id"] = request_id
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Attach simple, consistent JSON error handlers: {error, status, path[, details]}."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error = exc.detail if isinstance(exc.detail, str) else "HTTPError"
        body = _error_body(request, exc.status_code, error)
        if not isinstance(exc.detail, str) and exc.detail is not None:
            body["details"] = exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content=body,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = _error_body(request, 422, "ValidationError")
        body["details"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=422, content=body)
