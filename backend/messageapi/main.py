"""
Message API
FastAPI application for sending email and SMS through pluggable providers.

Run with:
    uvicorn messageapi.main:app
or the ``messageapi`` console script.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from messageapi import settings
from messageapi.errors import ConfigError, MessageAPIError
from messageapi.models.config import ConfigDocument
from messageapi.routers import config, messages
from messageapi.services.config_manager import ConfigManager, parse_config
from messageapi.services.dispatcher import Dispatcher
from messageapi.services.registry import ProviderRegistry, build_default_registry

# Configure logging to output to console
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def load_config_file(path: str) -> ConfigDocument:
    """
    Read and validate a JSON configuration document from disk.

    Raises ConfigError if the file cannot be read or is not a valid document.
    """
    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, ValueError) as exc:
        raise ConfigError(f"cannot read the configuration file {path}: {exc}")
    return parse_config(raw)


async def _message_api_error_handler(request: Request, exc: MessageAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    registry: Optional[ProviderRegistry] = None,
    config_manager: Optional[ConfigManager] = None,
) -> FastAPI:
    """
    Build the application.

    With no arguments the built-in providers are registered and the
    configuration comes from MESSAGEAPI_CONFIG_FILE / MESSAGEAPI_ADMIN_KEY.
    Tests pass their own registry or configuration manager.
    """
    if config_manager is None:
        registry = registry or build_default_registry()
        initial = load_config_file(settings.CONFIG_FILE) if settings.CONFIG_FILE else None
        config_manager = ConfigManager(registry, admin_key=settings.ADMIN_KEY, initial=initial)

    app = FastAPI(
        title="Message API",
        description="Send email and SMS through interchangeable providers",
        version=VERSION,
    )
    app.state.registry = config_manager.registry
    app.state.config_manager = config_manager
    app.state.dispatcher = Dispatcher(config_manager)

    app.add_exception_handler(MessageAPIError, _message_api_error_handler)

    # Include routers
    app.include_router(messages.router, prefix="/v1", tags=["messages"])
    app.include_router(config.router, prefix="/v1", tags=["config"])

    @app.get("/")
    async def root():
        return {"message": "Message API", "version": VERSION}

    @app.get("/health")
    async def health():
        snapshot = config_manager.current()
        return {
            "status": "ok",
            "emails": sorted(snapshot.emails),
            "smses": sorted(snapshot.smses),
        }

    return app


app = create_app()


def run() -> None:
    """
    Console entry point: serve the app on HOST:HOST_PORT.

    Serves HTTPS when both MESSAGEAPI_TLS_CERT_FILE and MESSAGEAPI_TLS_KEY_FILE
    are set, plain HTTP otherwise.
    """
    options = {}
    scheme = "http"
    if settings.TLS_CERT_FILE and settings.TLS_KEY_FILE:
        options["ssl_certfile"] = settings.TLS_CERT_FILE
        options["ssl_keyfile"] = settings.TLS_KEY_FILE
        scheme = "https"

    logger.info(f"Message API listening on {scheme}://{settings.HOST}:{settings.HOST_PORT}")
    uvicorn.run(app, host=settings.HOST, port=settings.HOST_PORT, **options)


if __name__ == "__main__":
    run()
