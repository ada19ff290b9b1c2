"""Response envelope applied to every JSON payload the API emits."""

import json
from typing import Any, Type

from fastapi.responses import JSONResponse

DEFAULT_CREATOR = "Created Using Rynn UI"


def apply_envelope(payload: Any, creator: str) -> Any:
    """Wrap an object payload with the default status and creator fields.

    Keys already present in the payload win over the defaults, so a handler
    can send its own ``status`` or ``creator``. Anything that is not a JSON
    object (lists, scalars, ``None``) is returned untouched.

    Args:
        payload: JSON-serializable value produced by a handler
        creator: Configured creator string

    Returns:
        The value that should be written to the wire
    """
    if not isinstance(payload, dict):
        return payload
    return {"status": 200, "creator": creator, **payload}


class EnvelopeJSONResponse(JSONResponse):
    """JSON response that applies the envelope when rendering its content."""

    creator: str = DEFAULT_CREATOR
    indent: int = 2

    def render(self, content: Any) -> bytes:
        content = apply_envelope(content, self.creator)
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=self.indent or None,
        ).encode("utf-8")


def envelope_response_class(creator: str, indent: int = 2) -> Type[EnvelopeJSONResponse]:
    """Build an envelope response class bound to one creator string.

    The class is installed as FastAPI's default response class and used by
    the handler response writer, so built-in endpoints and plugins share a
    single serialization point.
    """
    return type(
        "EnvelopeJSONResponse",
        (EnvelopeJSONResponse,),
        {"creator": creator, "indent": indent},
    )
