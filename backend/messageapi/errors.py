"""
Error taxonomy for the message API.

Every error that can reach a caller derives from MessageAPIError and carries
the HTTP status it is rendered with by the exception handler in messageapi.main:

  ConfigError           400  bad configuration document / provider load failure
  ProviderNotFound      400  unknown provider kind or provider not enabled
  ValidationError       400  missing or invalid request field
  AuthError             401  admin key missing   (403 when it does not match)
  SendError             500  transport failure after the dispatch policy ran out
  NoProviderConfigured  501  nothing configured for the requested category

DuplicateProviderError is not a MessageAPIError: registering the same
provider kind twice is a programming error raised at startup and is never
rendered as an HTTP response.
"""

from typing import Optional


class MessageAPIError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(MessageAPIError):
    status_code = 400


class ProviderNotFound(MessageAPIError):
    status_code = 400


class ValidationError(MessageAPIError):
    status_code = 400


class NoProviderConfigured(MessageAPIError):
    status_code = 501


class AuthError(MessageAPIError):
    """Admin key check failed. 401 when missing, 403 when wrong."""

    status_code = 401

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class SendError(MessageAPIError):
    """
    A provider failed to deliver the message and the dispatch policy is
    exhausted.

    ``failures`` holds every failed attempt recorded while dispatching, the
    last of which is the error reported in ``message``.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        failures: Optional[list] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.failures = failures or []


class DuplicateProviderError(Exception):
    """A provider kind was registered twice in the same category."""
