"""Route registration for validated plugin modules."""

import inspect
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from .catalog import ModuleCatalog
from .context import build_context
from .contract import Handler
from .discovery import DiscoveryReport
from .envelope import EnvelopeJSONResponse
from .errors import RegistryFrozenError, RouteConflictError
from .models import API_PREFIX, CatalogEntry, ModuleDescriptor

logger = logging.getLogger(__name__)

INFO_PATH = f"{API_PREFIX}/info"
BUILTIN_ROUTES = {("get", INFO_PATH): "built-in /api/info endpoint"}

RouteKey = Tuple[str, str]

_PARAM_SEGMENT = re.compile(r"(?<=/):(\w+)")
_PLACEHOLDER = re.compile(r"\{\w+\}")


def dispatch_path(resolved_path: str) -> str:
    """Translate ``/users/:id`` style segments into router placeholders."""
    return _PARAM_SEGMENT.sub(r"{\1}", resolved_path)


def route_key(method: str, path: str) -> RouteKey:
    """Key under which a route is unique; placeholder names do not matter."""
    return method.lower(), _PLACEHOLDER.sub("{}", path)


@dataclass(frozen=True)
class BindResult:
    """Outcome of binding one module."""

    bound: bool
    entry: Optional[CatalogEntry] = None
    error: Optional[RouteConflictError] = None


class RouteBinder:
    """Binds modules to the router, one binding per method and path."""

    def __init__(
        self,
        router: APIRouter,
        catalog: ModuleCatalog,
        json_response_class: Type[EnvelopeJSONResponse] = EnvelopeJSONResponse,
        reserved: Optional[Dict[RouteKey, str]] = None,
    ):
        self.router = router
        self.catalog = catalog
        self.json_response_class = json_response_class
        self._owners: Dict[RouteKey, str] = dict(BUILTIN_ROUTES if reserved is None else reserved)
        self._frozen = False

    @property
    def routes(self) -> Dict[RouteKey, str]:
        """Bound route keys and the source that owns each."""
        return dict(self._owners)

    def freeze(self) -> None:
        self._frozen = True
        self.catalog.freeze()

    def _make_endpoint(self, handler: Handler, method: str, path: str):
        json_response_class = self.json_response_class

        async def endpoint(request: Request) -> Response:
            logger.info(f"{method.upper()} {path}")
            ctx = await build_context(request, json_response_class)
            if inspect.iscoroutinefunction(handler):
                await handler(ctx)
            else:
                result = await run_in_threadpool(handler, ctx)
                if inspect.isawaitable(result):
                    await result
            if not ctx.res.sent:
                logger.warning(f"{method.upper()} {path} produced no response")
            return ctx.res.finish()

        return endpoint

    def bind(
        self, descriptor: ModuleDescriptor, handler: Handler, source: Optional[str] = None
    ) -> BindResult:
        """Register a module's handler and record its catalog entry.

        Args:
            descriptor: Validated module metadata
            handler: Module entry point
            source: File the module was loaded from

        Returns:
            BindResult; on a duplicate method and path the module is rejected
            and the existing binding is left in place.

        Raises:
            RegistryFrozenError: If called after startup completed
        """
        if self._frozen:
            raise RegistryFrozenError("Route table is frozen; modules can only be bound at startup")

        owner = source or descriptor.name
        method = descriptor.resolved_method
        path = dispatch_path(descriptor.resolved_path)
        key = route_key(method, path)

        if key in self._owners:
            error = RouteConflictError(owner, method, path, self._owners[key])
            logger.error(f"Route conflict: {error}")
            return BindResult(bound=False, error=error)

        self.router.add_api_route(
            path,
            self._make_endpoint(handler, method, path),
            methods=[method.upper()],
            name=descriptor.name,
            response_class=self.json_response_class,
            include_in_schema=False,
        )
        self._owners[key] = owner

        entry = CatalogEntry.from_descriptor(descriptor, source)
        self.catalog.record(entry)
        return BindResult(bound=True, entry=entry)

    def bind_all(self, report: DiscoveryReport) -> int:
        """Bind every discovered module, recording conflicts in the report.

        Returns:
            Number of routes bound
        """
        bound = 0
        for module in report.modules:
            result = self.bind(module.descriptor, module.handler, module.source)
            if result.bound:
                bound += 1
            elif result.error is not None:
                report.record_failure(result.error)
        logger.info(f"Load complete: {bound} routes loaded")
        return bound
