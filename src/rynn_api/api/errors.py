"""Error hierarchy and the HTTP error boundary for the Rynn API."""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import FileResponse, HTMLResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .envelope import EnvelopeJSONResponse

logger = logging.getLogger(__name__)

NOT_FOUND_PAGE = "404.html"
SERVER_ERROR_PAGE = "500.html"

FALLBACK_NOT_FOUND_BODY = "<!DOCTYPE html><html><body><h1>404 Not Found</h1></body></html>"
FALLBACK_SERVER_ERROR_BODY = (
    "<!DOCTYPE html><html><body><h1>500 Internal Server Error</h1></body></html>"
)


class FailureKind(str, Enum):
    """Reasons a discovered module ends up without a route."""

    INVALID_MODULE = "invalid_module"  # Missing metadata or entry point
    LOAD_ERROR = "load_error"  # Raised while importing the file
    ROUTE_CONFLICT = "route_conflict"  # Method and path already taken


class RynnError(Exception):
    """Base class for all Rynn API errors."""


class SettingsError(RynnError):
    """The settings document is missing, unreadable, or malformed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot load settings from {path}: {reason}")
        self.path = path
        self.reason = reason


class ModuleError(RynnError):
    """A plugin module could not be activated."""

    kind: FailureKind = FailureKind.INVALID_MODULE

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class InvalidModuleError(ModuleError):
    """A plugin module does not satisfy the module contract."""

    kind = FailureKind.INVALID_MODULE


class ModuleLoadError(ModuleError):
    """Importing a plugin module raised an exception."""

    kind = FailureKind.LOAD_ERROR


class RouteConflictError(ModuleError):
    """A module claimed a method and path that is already bound."""

    kind = FailureKind.ROUTE_CONFLICT

    def __init__(self, source: str, method: str, path: str, existing: str):
        super().__init__(
            source, f"route {method.upper()} {path} is already bound by {existing}"
        )
        self.method = method
        self.path = path
        self.existing = existing


class RegistryFrozenError(RynnError):
    """The route table or catalog was modified after startup."""


class ResponseAlreadySentError(RynnError):
    """A handler tried to write a second response."""


def _page_response(web_dir: Optional[Path], page: str, fallback: str, status_code: int) -> Response:
    if web_dir is not None:
        page_path = web_dir / page
        if page_path.is_file():
            return FileResponse(page_path, status_code=status_code, media_type="text/html")
    return HTMLResponse(fallback, status_code=status_code)


def register_error_handlers(
    app: FastAPI,
    web_dir: Optional[Path] = None,
    json_response_class: Type[EnvelopeJSONResponse] = EnvelopeJSONResponse,
) -> None:
    """Register the global error boundary on the FastAPI app.

    Args:
        app: Application to install the handlers on
        web_dir: Directory holding the static 404/500 pages, if any
        json_response_class: Envelope class used for JSON error bodies
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Unmatched routes become the static 404 page for every method."""
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            logger.info(f"404 Not Found: {request.url}")
            return _page_response(
                web_dir, NOT_FOUND_PAGE, FALLBACK_NOT_FOUND_BODY, status.HTTP_404_NOT_FOUND
            )
        return json_response_class(
            {"status": exc.status_code, "message": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        """Catch-all - the trace goes to the log, never to the client."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )
        return _page_response(
            web_dir,
            SERVER_ERROR_PAGE,
            FALLBACK_SERVER_ERROR_BODY,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
