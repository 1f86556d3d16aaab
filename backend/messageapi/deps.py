"""
FastAPI dependencies.

The registry, configuration manager and dispatcher are explicit objects built
by create_app() and kept on app.state, so each app instance (and each test)
gets its own.
"""

from fastapi import Request

from messageapi.services.config_manager import ConfigManager
from messageapi.services.dispatcher import Dispatcher


def get_config_manager(request: Request) -> ConfigManager:
    return request.app.state.config_manager


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher
