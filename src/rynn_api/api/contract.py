"""Module contract that every plugin must satisfy."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from .errors import InvalidModuleError
from .models import ModuleDescriptor

Handler = Callable[[Any], Union[None, Awaitable[None]]]


@runtime_checkable
class ApiModule(Protocol):
    """What a plugin exposes: a ``meta`` record and an ``on_start`` entry point.

    A plugin file satisfies this simply by defining both names at module
    level::

        meta = {"name": "Ping", "path": "/ping", "category": "util"}

        def on_start(ctx):
            ctx.res.json({"message": "pong"})

    ``on_start`` receives a :class:`~rynn_api.api.context.RequestContext` and
    may be a plain function or a coroutine function.
    """

    meta: Any

    def on_start(self, ctx: Any) -> Any: ...


@dataclass(frozen=True)
class LoadedModule:
    """A validated plugin ready to be bound."""

    descriptor: ModuleDescriptor
    handler: Handler
    source: str


def _describe_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc']) or 'meta'}: {err['msg']}"
        for err in exc.errors()
    )


def validate_module(unit: Any, source: str) -> LoadedModule:
    """Check a loaded unit against the module contract.

    Args:
        unit: Imported module (or any object) exposing ``meta`` and ``on_start``
        source: Where the unit came from, used in error messages

    Returns:
        The validated module

    Raises:
        InvalidModuleError: If metadata is absent or malformed, or the entry
            point is absent or not callable.
    """
    if not isinstance(unit, ApiModule):
        missing = "meta" if not hasattr(unit, "meta") else "on_start"
        raise InvalidModuleError(source, f"missing '{missing}'")

    meta = unit.meta
    if meta is None:
        raise InvalidModuleError(source, "missing 'meta'")

    handler: Optional[Handler] = unit.on_start
    if handler is None:
        raise InvalidModuleError(source, "missing 'on_start'")
    if not callable(handler):
        raise InvalidModuleError(source, "'on_start' is not callable")

    if isinstance(meta, ModuleDescriptor):
        descriptor = meta
    elif isinstance(meta, Mapping):
        try:
            descriptor = ModuleDescriptor.model_validate(dict(meta))
        except ValidationError as exc:
            raise InvalidModuleError(source, f"invalid 'meta': {_describe_errors(exc)}") from exc
    else:
        raise InvalidModuleError(
            source, f"'meta' must be a mapping, got {type(meta).__name__}"
        )

    return LoadedModule(descriptor=descriptor, handler=handler, source=source)
