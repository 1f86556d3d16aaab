"""
Dispatcher: resolves a validated message to provider(s) and runs the send
policy against the snapshot captured at the start of the request.

Provider selection
------------------
  "<name>"  exactly that provider; not enabled -> ProviderNotFound
  "all"     every enabled provider of the category, in name order
            (lexicographic)
  ""        the category's configured default; email falls back to "plain",
            SMS has no fallback -> ProviderNotFound

Send policy
-----------
  "all"     one attempt per provider, stop at the first success. Failures are
            logged and recorded but do not stop the remaining attempts. The
            retry budget is not used in this mode.
  single    1 + retry attempts back to back, no delay between them.

A category with no enabled provider at all raises NoProviderConfigured
before any selection happens.

When the policy is exhausted a SendError carrying the last provider error and
every recorded failure is raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from messageapi.errors import NoProviderConfigured, ProviderNotFound, SendError
from messageapi.models.message import ALL_PROVIDERS, OutboundEmail, OutboundSMS
from messageapi.providers.base import EMAIL, SMS, Provider
from messageapi.services.config_manager import (
    DEFAULT_EMAIL_PROVIDER,
    ActiveConfig,
    ConfigManager,
)

logger = logging.getLogger(__name__)

Message = Union[OutboundEmail, OutboundSMS]


@dataclass(frozen=True)
class AttemptFailure:
    """One failed send attempt."""

    provider: str
    attempt: int
    error: str


@dataclass
class DispatchReport:
    """Outcome of a successful dispatch."""

    provider: str
    attempts: int
    failures: list[AttemptFailure] = field(default_factory=list)


class Dispatcher:
    def __init__(self, config_manager: ConfigManager):
        self._config = config_manager

    def send_email(
        self, message: OutboundEmail, snapshot: Optional[ActiveConfig] = None
    ) -> DispatchReport:
        return self._dispatch(
            EMAIL, message, snapshot, lambda provider: provider.send_email(message)
        )

    def send_sms(
        self, message: OutboundSMS, snapshot: Optional[ActiveConfig] = None
    ) -> DispatchReport:
        return self._dispatch(
            SMS, message, snapshot, lambda provider: provider.send_sms(message)
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_selector(category: str, selector: str, snapshot: ActiveConfig) -> str:
        """Substitute the default provider name for an empty selector."""
        if selector:
            return selector

        if category == EMAIL:
            return snapshot.default_email_provider or DEFAULT_EMAIL_PROVIDER

        if snapshot.default_sms_provider:
            return snapshot.default_sms_provider
        raise ProviderNotFound("no sms provider given and no default sms provider configured")

    def _dispatch(
        self,
        category: str,
        message: Message,
        snapshot: Optional[ActiveConfig],
        send: Callable[[Provider], None],
    ) -> DispatchReport:
        # Captured once; a configuration change mid-request does not affect it.
        snapshot = snapshot or self._config.current()
        enabled = snapshot.providers(category)
        if not enabled:
            raise NoProviderConfigured(f"no {category} provider is configured")
        selector = self.resolve_selector(category, message.provider, snapshot)

        if selector == ALL_PROVIDERS:
            targets = [(name, enabled[name]) for name in sorted(enabled)]
            return self._send_in_order(category, targets, send)

        provider = enabled.get(selector)
        if provider is None:
            raise ProviderNotFound(f"no {category} provider named [{selector}] is enabled")
        return self._send_with_retry(category, selector, provider, message.retry, send)

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _send_in_order(
        self,
        category: str,
        targets: list[tuple[str, Provider]],
        send: Callable[[Provider], None],
    ) -> DispatchReport:
        failures: list[AttemptFailure] = []
        last_error: Optional[Exception] = None

        for attempt, (name, provider) in enumerate(targets, start=1):
            try:
                send(provider)
            except Exception as exc:
                last_error = exc
                failures.append(AttemptFailure(provider=name, attempt=attempt, error=str(exc)))
                logger.warning(f"{category} provider [{name}] failed, trying next: {exc}")
                continue

            logger.info(f"{category} sent via [{name}] after {attempt} attempt(s)")
            return DispatchReport(provider=name, attempts=attempt, failures=failures)

        logger.error(f"all {len(targets)} {category} providers failed; last error: {last_error}")
        raise SendError(
            str(last_error),
            provider=failures[-1].provider,
            failures=failures,
        ) from last_error

    def _send_with_retry(
        self,
        category: str,
        name: str,
        provider: Provider,
        retry: int,
        send: Callable[[Provider], None],
    ) -> DispatchReport:
        failures: list[AttemptFailure] = []
        last_error: Optional[Exception] = None
        total = retry + 1

        for attempt in range(1, total + 1):
            try:
                send(provider)
            except Exception as exc:
                last_error = exc
                failures.append(AttemptFailure(provider=name, attempt=attempt, error=str(exc)))
                logger.warning(
                    f"{category} provider [{name}] failed (attempt {attempt}/{total}): {exc}"
                )
                continue

            logger.info(f"{category} sent via [{name}] after {attempt} attempt(s)")
            return DispatchReport(provider=name, attempts=attempt, failures=failures)

        logger.error(f"{category} provider [{name}] failed after {total} attempt(s): {last_error}")
        raise SendError(str(last_error), provider=name, failures=failures) from last_error
