"""
Provider registry.

Maps a provider kind name to its singleton instance, per category. The
registry only says which kinds *exist*; which ones are enabled and how they
are configured is the job of the active configuration snapshot.

Adding a new provider:
  1. Subclass EmailProvider or SMSProvider in messageapi/providers/.
  2. Give the module a register(registry) function.
  3. Add the module to _BUILTIN_PROVIDERS below.

The registry is filled once at startup and only read afterwards, so lookups
take no lock.
"""

import logging
from typing import Optional

from messageapi.errors import DuplicateProviderError
from messageapi.providers import plain_email, twilio_sms
from messageapi.providers.base import CATEGORIES, Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Append-only table of provider kinds."""

    def __init__(self) -> None:
        self._providers: dict[str, dict[str, Provider]] = {c: {} for c in CATEGORIES}

    def _table(self, category: str) -> dict[str, Provider]:
        try:
            return self._providers[category]
        except KeyError:
            raise ValueError(
                f"Unknown provider category {category!r}. "
                f"Supported categories: {sorted(self._providers)}"
            )

    def register(self, category: str, name: str, provider: Provider) -> None:
        """
        Register ``provider`` as kind ``name`` in ``category``.

        Raises DuplicateProviderError if the name is already taken; the
        existing entry is never replaced.
        """
        table = self._table(category)
        if name in table:
            raise DuplicateProviderError(f"the {category} provider [{name}] has been registered")
        table[name] = provider
        logger.debug(f"registered {category} provider [{name}]")

    def lookup(self, category: str, name: str) -> Optional[Provider]:
        return self._table(category).get(name)

    def names(self, category: str) -> list[str]:
        return sorted(self._table(category))


# ---------------------------------------------------------------------------
# Built-in providers
# ---------------------------------------------------------------------------

_BUILTIN_PROVIDERS = (
    plain_email,
    twilio_sms,
)


def build_default_registry() -> ProviderRegistry:
    """Return a registry holding one instance of every built-in provider."""
    registry = ProviderRegistry()
    for module in _BUILTIN_PROVIDERS:
        module.register(registry)
    return registry
