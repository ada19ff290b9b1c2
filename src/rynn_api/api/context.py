"""Request/response context handed to plugin handlers."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Type, Union
from urllib.parse import parse_qsl

from fastapi import HTTPException, Request
from fastapi import status as http_status
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, Response

from .envelope import EnvelopeJSONResponse
from .errors import ResponseAlreadySentError

logger = logging.getLogger(__name__)


class ResponseWriter:
    """Collects the single response a handler produces.

    Handlers call :meth:`json`, :meth:`send`, :meth:`send_file` or
    :meth:`redirect` exactly once; :meth:`status` and :meth:`set` may be
    chained before that.
    """

    def __init__(self, json_response_class: Type[EnvelopeJSONResponse] = EnvelopeJSONResponse):
        self._json_response_class = json_response_class
        self._status_code = http_status.HTTP_200_OK
        self._headers: Dict[str, str] = {}
        self._response: Optional[Response] = None

    @property
    def sent(self) -> bool:
        return self._response is not None

    @property
    def status_code(self) -> int:
        return self._status_code

    def status(self, code: int) -> "ResponseWriter":
        """Set the HTTP status code of the response."""
        self._status_code = code
        return self

    def set(self, name: str, value: str) -> "ResponseWriter":
        """Set a response header."""
        self._headers[name] = value
        return self

    def _commit(self, response: Response) -> None:
        if self._response is not None:
            raise ResponseAlreadySentError("Response already sent")
        self._response = response

    def json(self, payload: Any) -> None:
        """Send a JSON payload through the response envelope."""
        self._commit(
            self._json_response_class(
                payload, status_code=self._status_code, headers=self._headers
            )
        )

    def send(self, body: Union[str, bytes, dict, list, None]) -> None:
        """Send a body, choosing the content type from its Python type."""
        if isinstance(body, (dict, list)):
            self.json(body)
        elif isinstance(body, bytes):
            self._commit(
                Response(
                    body,
                    status_code=self._status_code,
                    headers=self._headers,
                    media_type="application/octet-stream",
                )
            )
        else:
            self._commit(
                HTMLResponse(
                    "" if body is None else str(body),
                    status_code=self._status_code,
                    headers=self._headers,
                )
            )

    def send_file(self, path: Union[str, Path]) -> None:
        """Send a file from disk."""
        self._commit(FileResponse(path, status_code=self._status_code, headers=self._headers))

    def redirect(self, url: str, status_code: int = http_status.HTTP_302_FOUND) -> None:
        """Redirect the client to another URL."""
        self._commit(RedirectResponse(url, status_code=status_code, headers=self._headers))

    def finish(self) -> Response:
        """Return the response the handler produced.

        A handler that wrote nothing gets an empty ``204 No Content``.
        """
        if self._response is None:
            return Response(status_code=http_status.HTTP_204_NO_CONTENT, headers=self._headers)
        return self._response


@dataclass
class RequestContext:
    """Everything a handler needs to serve one request."""

    request: Request
    res: ResponseWriter
    params: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def req(self) -> Request:
        return self.request


async def read_body(request: Request) -> Any:
    """Parse the request body according to its content type.

    Returns:
        Decoded JSON for ``application/json``, a dict for URL-encoded forms,
        otherwise ``None``.

    Raises:
        HTTPException: If a JSON body cannot be decoded.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in ("application/json", "application/x-www-form-urlencoded"):
        return None

    raw = await request.body()
    if not raw:
        return None

    if content_type == "application/json":
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning(f"Invalid JSON body on {request.method} {request.url.path}: {exc}")
            raise HTTPException(
                status_code=http_status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body"
            )

    return dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))


async def build_context(
    request: Request,
    json_response_class: Type[EnvelopeJSONResponse] = EnvelopeJSONResponse,
) -> RequestContext:
    """Build the handler context for an incoming request."""
    return RequestContext(
        request=request,
        res=ResponseWriter(json_response_class),
        params=dict(request.path_params),
        query=dict(request.query_params),
        body=await read_body(request),
    )
