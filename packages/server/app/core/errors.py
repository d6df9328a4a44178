"""
Business error taxonomy and its translation into problem+json responses.

Services raise these at the point of detection; the handlers registered by
``register_exception_handlers`` map them onto HTTP status codes.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = structlog.get_logger()

PROBLEM_JSON = "application/problem+json"

STATUS_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
}


class AppError(Exception):
    """Base for errors that carry a short title and a human-readable detail."""

    status_code: int = 500

    def __init__(self, title: str, detail: Optional[str] = None):
        super().__init__(title)
        self.title = title
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.title}: {self.detail}" if self.detail else self.title


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


def problem_response(
    request: Request,
    status_code: int,
    title: str,
    detail: Optional[str] = None,
    errors: Optional[list] = None,
) -> JSONResponse:
    body = {
        "status": status_code,
        "title": title,
        "detail": detail,
        "instance": request.url.path,
    }
    if errors is not None:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body, media_type=PROBLEM_JSON)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers translating errors into structured responses."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            log.error("request.server_error", path=request.url.path, title=exc.title, detail=exc.detail)
        else:
            log.warning(
                "request.client_error",
                status=exc.status_code,
                method=request.method,
                path=request.url.path,
                title=exc.title,
                detail=exc.detail,
            )
        return problem_response(
            request,
            exc.status_code,
            exc.title,
            exc.detail,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        log.warning(
            "request.validation_error",
            method=request.method,
            path=request.url.path,
            errors=errors,
        )
        return problem_response(
            request, 400, "Bad Request", "One or more validation errors occurred.", errors
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else None
        if exc.status_code >= 500:
            log.error("request.http_error", status=exc.status_code, path=request.url.path)
        else:
            log.warning(
                "request.http_error",
                status=exc.status_code,
                method=request.method,
                path=request.url.path,
            )
        return problem_response(
            request,
            exc.status_code,
            STATUS_TITLES.get(exc.status_code, "An error occurred"),
            detail,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("request.unhandled_error", method=request.method, path=request.url.path)
        return problem_response(
            request,
            500,
            "An error occurred while processing your request",
            "An unexpected error occurred. Please try again later.",
        )
