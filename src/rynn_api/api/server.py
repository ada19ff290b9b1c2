"""FastAPI application setup and routing for the Rynn API."""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple, Type

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from .. import __version__
from .binder import INFO_PATH, RouteBinder
from .catalog import ModuleCatalog
from .config import Config, SiteSettings, load_site_settings, settings_summary
from .discovery import DiscoveryReport, discover
from .envelope import EnvelopeJSONResponse, envelope_response_class
from .errors import SettingsError, register_error_handlers
from .models import InfoResponse

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_modules(
    config: Config,
    router: APIRouter,
    json_response_class: Type[EnvelopeJSONResponse] = EnvelopeJSONResponse,
) -> Tuple[RouteBinder, DiscoveryReport]:
    """Discover plugin modules and bind them to ``router``.

    Runs once, sequentially, before the server accepts traffic. The returned
    binder and its catalog are frozen.
    """
    report = discover(config.api_dir, config.module_extension)
    binder = RouteBinder(router, ModuleCatalog(), json_response_class)
    binder.bind_all(report)
    binder.freeze()
    return binder, report


def _page_endpoint(page_path: Path):
    async def serve_page() -> FileResponse:
        return FileResponse(page_path, media_type="text/html")

    return serve_page


def _add_page_routes(app: FastAPI, web_dir: Path, pages: List[str]) -> None:
    for page in pages:
        page_path = web_dir / page
        if not page_path.is_file():
            logger.debug(f"Page {page_path} not found; /{page_path.stem} not served")
            continue

        app.add_api_route(
            f"/{page_path.stem}",
            _page_endpoint(page_path),
            methods=["GET"],
            include_in_schema=False,
            name=f"page:{page_path.stem}",
        )


def create_app(
    config: Optional[Config] = None, site_settings: Optional[SiteSettings] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Process configuration; read from the environment when omitted
        site_settings: Parsed settings document; read from
            ``config.settings_path`` when omitted

    Raises:
        SettingsError: If the settings document cannot be loaded
    """
    if config is None:
        config = Config.from_env()
    if site_settings is None:
        site_settings = load_site_settings(config.settings_path)

    json_response_class = envelope_response_class(site_settings.creator, config.json_indent)

    # FastAPI's own docs pages are disabled; /docs is a static page here
    app = FastAPI(
        title="Rynn API",
        description="Plugin-based HTTP API host",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=json_response_class,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    web_dir = Path(config.web_dir)
    has_web_dir = web_dir.is_dir()
    register_error_handlers(app, web_dir if has_web_dir else None, json_response_class)

    # Built-in routes precede plugin routes in match order
    @app.get(INFO_PATH, response_model=InfoResponse, tags=["info"])
    async def api_info(request: Request) -> InfoResponse:
        """Category-grouped catalog of every loaded module."""
        return InfoResponse(categories=request.app.state.catalog.build())

    settings_path = Path(config.settings_path)

    @app.get("/settings.json", include_in_schema=False)
    async def settings_document() -> FileResponse:
        """Raw settings document, served without the envelope."""
        return FileResponse(settings_path, media_type="application/json")

    router = APIRouter()
    binder, report = load_modules(config, router, json_response_class)
    app.include_router(router)

    app.state.config = config
    app.state.site_settings = site_settings
    app.state.binder = binder
    app.state.catalog = binder.catalog
    app.state.discovery_report = report

    if has_web_dir:
        _add_page_routes(app, web_dir, config.pages)
        # Mounted last so plugin and built-in routes take precedence
        app.mount("/", StaticFiles(directory=web_dir, html=True), name="web")

    return app


def discovery_summary(report: DiscoveryReport) -> str:
    return f"{len(report.modules)} modules loaded, {len(report.failures)} skipped"


def run_server(config: Config) -> None:
    """Build the app and serve it with uvicorn until interrupted."""
    import uvicorn

    try:
        app = create_app(config)
    except SettingsError as e:
        logger.error(f"Startup aborted: {e}")
        sys.exit(1)

    logger.info(f"Settings: {settings_summary(app.state.site_settings)}")
    logger.info(f"Modules: {discovery_summary(app.state.discovery_report)}")
    logger.info(f"Starting Rynn API server on {config.host}:{config.port}")

    try:
        uvicorn.run(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
        sys.exit(0)


def main():
    """Entry point for the rynn-api command."""
    config = Config.from_env()

    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO), format=LOG_FORMAT)

    run_server(config)


if __name__ == "__main__":
    main()
