"""
Configuration endpoints.

  GET  /v1/config   current configuration, credentials redacted
  POST /v1/config   replace the whole configuration

A POST body is the full configuration document plus an optional ``key``
field. When the server holds an admin key the ``key`` is checked before any
other field is looked at:
  missing -> 401, wrong -> 403.
After that the document is validated (400 on a type error), every provider
in it is loaded (400 on an unknown provider or a load failure, with the
previous configuration still active) and the new configuration is published.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from messageapi.deps import get_config_manager
from messageapi.errors import ConfigError, MessageAPIError
from messageapi.services.config_manager import ConfigManager, parse_config, public_view

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/config", response_model=dict)
async def get_config(config_manager: ConfigManager = Depends(get_config_manager)):
    return public_view(config_manager.current())


@router.post("/config", response_model=dict)
async def update_config(
    request: Request,
    config_manager: ConfigManager = Depends(get_config_manager),
):
    try:
        raw = await request.json()
    except ValueError:
        raise ConfigError("the configuration is not valid JSON")
    if not isinstance(raw, dict):
        raise ConfigError("the configuration must be a JSON object")

    config_manager.check_admin_key(raw.get("key"))

    document = parse_config(raw)

    # Provider load() may do I/O; keep it off the event loop.
    try:
        snapshot = await run_in_threadpool(config_manager.apply, document)
    except MessageAPIError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error applying configuration: {e}")
        raise HTTPException(status_code=500, detail="Failed to apply the configuration")

    return public_view(snapshot)
