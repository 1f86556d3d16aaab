"""
"plain" email provider: SMTP with username/password login.

Options (all strings):
  host        SMTP server host                      (required)
  port        SMTP server port, default 25
  username    login user                            (required)
  password    login password                        (required)
  from        sender address                        (required)
  starttls    "true" always upgrades with STARTTLS, "false" never does;
              unset upgrades whenever the server advertises it
  timeout     socket timeout in seconds, default 30

Credentials are only sent over an encrypted session, except to a server on
the local host.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Mapping, Optional

from messageapi.errors import ConfigError
from messageapi.models.message import OutboundEmail
from messageapi.providers.base import EMAIL, EmailProvider, parse_bool, require

logger = logging.getLogger(__name__)

NAME = "plain"

_DEFAULT_PORT = 25
_DEFAULT_TIMEOUT = 30.0
_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass(frozen=True)
class _SMTPSettings:
    host: str
    port: int
    username: str
    password: str
    sender: str
    starttls: Optional[bool]   # None: upgrade when the server offers it
    timeout: float


def _parse_port(raw: Optional[str]) -> int:
    if raw is None or raw == "":
        return _DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        raise ConfigError(f"the port configuration is not an integer: {raw!r}")
    if not 0 < port < 65536:
        raise ConfigError(f"the port configuration is out of range: {port}")
    return port


def _parse_starttls(config: Mapping[str, str]) -> Optional[bool]:
    if config.get("starttls") in (None, ""):
        return None
    return parse_bool(config, "starttls")


def _parse_timeout(raw: Optional[str]) -> float:
    if raw is None or raw == "":
        return _DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigError(f"the timeout configuration is not a number: {raw!r}")
    if timeout <= 0:
        raise ConfigError("the timeout configuration must be positive")
    return timeout


class PlainEmailProvider(EmailProvider):
    """Send email through an SMTP server using plain login."""

    def __init__(self) -> None:
        super().__init__()
        self._settings: Optional[_SMTPSettings] = None

    def load(self, config: Mapping[str, str]) -> None:
        # Parse everything before touching state so a bad document leaves the
        # previous settings intact.
        settings = _SMTPSettings(
            host=require(config, "host"),
            port=_parse_port(config.get("port")),
            username=require(config, "username"),
            password=require(config, "password"),
            sender=require(config, "from"),
            starttls=_parse_starttls(config),
            timeout=_parse_timeout(config.get("timeout")),
        )
        with self._lock:
            self._settings = settings
        logger.info(f"plain email provider loaded: server={settings.host}:{settings.port}")

    def _current(self) -> _SMTPSettings:
        with self._lock:
            settings = self._settings
        if settings is None:
            raise RuntimeError("the plain email provider has not been configured")
        return settings

    def build_message(self, message: OutboundEmail, sender: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr(("From", sender))
        msg["To"] = ", ".join(message.to)
        msg["Subject"] = message.subject
        msg.set_content(message.content)

        for filename, content in message.attachments.items():
            msg.add_attachment(
                content,
                maintype="application",
                subtype="octet-stream",
                filename=filename,
            )
        return msg

    def send_email(self, message: OutboundEmail) -> None:
        settings = self._current()
        msg = self.build_message(message, settings.sender)

        with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout) as server:
            server.ehlo()
            encrypted = False
            if settings.starttls or (settings.starttls is None and server.has_extn("starttls")):
                server.starttls()
                encrypted = True
            if not encrypted and settings.host not in _LOCAL_HOSTS:
                raise smtplib.SMTPException(
                    f"refusing to log in to {settings.host} over an unencrypted connection"
                )
            server.login(settings.username, settings.password)
            server.send_message(msg, from_addr=settings.sender, to_addrs=message.to)


def register(registry) -> None:
    registry.register(EMAIL, NAME, PlainEmailProvider())
