"""
Provider contract.

A provider is a singleton plugin for one category (email or SMS) that is
registered once at startup and configured, possibly many times, through
load().

Contract for implementations:
  - load() validates its options and raises ConfigError on anything missing
    or malformed. It may be called again at any time, including while a send
    is in flight on another request, so it must swap its state atomically
    under the provider's own lock.
  - send_*() delivers one message and raises on transport failure. It may
    block on network I/O. It reads its credentials under the same lock so it
    never sees half of an old configuration and half of a new one.

The dispatcher and the configuration manager assume nothing else about
thread safety.
"""

import threading
from abc import ABC, abstractmethod
from typing import Mapping

from messageapi.errors import ConfigError
from messageapi.models.message import OutboundEmail, OutboundSMS

EMAIL = "email"
SMS = "sms"
CATEGORIES = (EMAIL, SMS)


class Provider(ABC):
    """Common base: a lock for provider state and the load() hook."""

    category: str = ""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @abstractmethod
    def load(self, config: Mapping[str, str]) -> None:
        """Apply a new set of options. Raises ConfigError."""


class EmailProvider(Provider):
    category = EMAIL

    @abstractmethod
    def send_email(self, message: OutboundEmail) -> None:
        """Deliver one email."""


class SMSProvider(Provider):
    category = SMS

    @abstractmethod
    def send_sms(self, message: OutboundSMS) -> None:
        """Deliver one SMS."""


def require(config: Mapping[str, str], name: str) -> str:
    """
    Return a required option or raise ConfigError naming it.

    Only presence is checked; an empty string is a valid value.
    """
    value = config.get(name)
    if value is None:
        raise ConfigError(f"missing the {name} configuration")
    return value


def parse_bool(config: Mapping[str, str], name: str, default: bool = False) -> bool:
    """Parse an optional "true"/"false" option."""
    raw = config.get(name)
    if raw is None or raw == "":
        return default
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"the {name} configuration must be true or false, got {raw!r}")
