"""
Configuration manager.

Turns a configuration document into an immutable ActiveConfig snapshot and
publishes it as the single active configuration.

Invariants:
  - A snapshot never changes after publication. Every successful apply()
    builds a brand-new one.
  - apply() is all-or-nothing: an unknown provider or a failed load() aborts
    the call and the previously active snapshot stays in place.
  - Concurrent apply() calls run one at a time (last writer wins). Readers
    only ever see a fully built snapshot: publication is a single reference
    swap under a short lock that is never held while a provider loads.

Known limitation: load() is called on the shared provider singletons as the
document is walked, so when a later provider fails to load, providers loaded
earlier in the same call already hold the new options even though the old
snapshot stays active.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

import pydantic

from messageapi.auth import verify_admin_key
from messageapi.errors import ConfigError, ProviderNotFound
from messageapi.models.config import ConfigDocument
from messageapi.providers.base import EMAIL, SMS, Provider
from messageapi.services.registry import ProviderRegistry

logger = logging.getLogger(__name__)

# Email falls back to this provider when neither the request nor the
# configuration names one. SMS has no such fallback.
DEFAULT_EMAIL_PROVIDER = "plain"

_REDACTED = "******"
_SECRET_MARKERS = ("password", "secret", "token", "key")


@dataclass(frozen=True)
class ActiveConfig:
    """Immutable snapshot of the configuration in effect."""

    document: ConfigDocument
    admin_key: str = field(default="", repr=False)
    emails: Mapping[str, Provider] = field(default_factory=lambda: MappingProxyType({}))
    smses: Mapping[str, Provider] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def allow_get(self) -> bool:
        return self.document.allow_get

    @property
    def ignore_not_supported_provider(self) -> bool:
        return self.document.ignore_not_supported_provider

    @property
    def default_email_provider(self) -> str:
        return self.document.default_email_provider

    @property
    def default_sms_provider(self) -> str:
        return self.document.default_sms_provider

    def providers(self, category: str) -> Mapping[str, Provider]:
        if category == EMAIL:
            return self.emails
        if category == SMS:
            return self.smses
        raise ValueError(f"Unknown provider category {category!r}")


def default_document() -> ConfigDocument:
    return ConfigDocument(default_email_provider=DEFAULT_EMAIL_PROVIDER)


def parse_config(raw: Any) -> ConfigDocument:
    """
    Validate a raw configuration mapping into a ConfigDocument.

    Raises ConfigError naming the first offending field.
    """
    if not isinstance(raw, dict):
        raise ConfigError("the configuration must be a JSON object")
    try:
        return ConfigDocument.model_validate(raw)
    except pydantic.ValidationError as exc:
        err = exc.errors()[0]
        location = ".".join(str(part) for part in err.get("loc", ()))
        raise ConfigError(f"the type of {location} is wrong: {err.get('msg')}")


def _redact(options: Mapping[str, str]) -> dict[str, str]:
    return {
        name: _REDACTED if any(m in name.lower() for m in _SECRET_MARKERS) else value
        for name, value in options.items()
    }


def public_view(snapshot: ActiveConfig) -> dict:
    """
    The active document as a plain dict, with credential values redacted.

    Any provider option whose name contains password, secret, token or key is
    replaced by a placeholder. The admin key is never included.
    """
    data = snapshot.document.model_dump()
    data["emails"] = {n: _redact(o) for n, o in snapshot.document.emails.items()}
    data["smses"] = {n: _redact(o) for n, o in snapshot.document.smses.items()}
    return data


class ConfigManager:
    """Owns the active configuration snapshot."""

    def __init__(
        self,
        registry: ProviderRegistry,
        admin_key: str = "",
        initial: Optional[ConfigDocument] = None,
    ):
        self._registry = registry
        self._admin_key = admin_key
        self._apply_lock = threading.Lock()
        self._snapshot_lock = threading.Lock()
        self._snapshot = ActiveConfig(document=default_document(), admin_key=admin_key)
        if initial is not None:
            self.apply(initial)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def admin_key(self) -> str:
        return self._admin_key

    def check_admin_key(self, provided: Any) -> None:
        """Raise AuthError unless ``provided`` matches the server admin key."""
        verify_admin_key(provided, self._admin_key)

    def current(self) -> ActiveConfig:
        """Return the active snapshot."""
        with self._snapshot_lock:
            return self._snapshot

    def apply(self, document: ConfigDocument) -> ActiveConfig:
        """
        Load every provider named in ``document`` and publish a new snapshot.

        Raises:
            ProviderNotFound: a provider kind is not registered and
                ignore_not_supported_provider is false.
            ConfigError: a provider rejected its options.
        """
        with self._apply_lock:
            emails = self._load_providers(EMAIL, document.emails, document)
            smses = self._load_providers(SMS, document.smses, document)

            snapshot = ActiveConfig(
                document=document,
                admin_key=self._admin_key,
                emails=MappingProxyType(emails),
                smses=MappingProxyType(smses),
            )
            with self._snapshot_lock:
                self._snapshot = snapshot

        logger.info(
            "Configuration applied: emails=%s smses=%s allow_get=%s",
            sorted(emails),
            sorted(smses),
            document.allow_get,
        )
        return snapshot

    def _load_providers(
        self,
        category: str,
        configs: Mapping[str, Mapping[str, str]],
        document: ConfigDocument,
    ) -> dict[str, Provider]:
        loaded: dict[str, Provider] = {}
        for name in sorted(configs):
            provider = self._registry.lookup(category, name)
            if provider is None:
                if document.ignore_not_supported_provider:
                    logger.warning(f"Skipping unsupported {category} provider [{name}]")
                    continue
                raise ProviderNotFound(f"no {category} provider named [{name}]")

            try:
                provider.load(dict(configs[name]))
            except ConfigError as exc:
                raise ConfigError(
                    f"failed to load the {category} provider [{name}]: {exc.message}"
                ) from exc
            except Exception as exc:
                logger.error(f"Unexpected error loading {category} provider [{name}]: {exc}")
                raise ConfigError(
                    f"failed to load the {category} provider [{name}]: {exc}"
                ) from exc

            loaded[name] = provider
        return loaded
