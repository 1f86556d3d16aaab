"""
Request and message models for the send endpoints.

EmailRequest / SMSRequest mirror what arrives over HTTP (JSON body for POST,
query string for GET). to_message() validates them into the canonical
OutboundEmail / OutboundSMS models the dispatcher and providers work with;
nothing downstream ever sees the raw request shape.
"""

from typing import Any, Optional

import pydantic
from pydantic import BaseModel, Field, field_validator

from messageapi.errors import ValidationError

# Selector value that fans a message out to every enabled provider in turn.
ALL_PROVIDERS = "all"

# Upper bound on the per-request retry budget.
MAX_RETRY = 10


def _reject_bool(value: Any) -> Any:
    # JSON true/false would otherwise coerce to 1/0
    if isinstance(value, bool):
        raise ValueError("must be an integer, not a boolean")
    return value


# ---------------------------------------------------------------------------
# Canonical messages
# ---------------------------------------------------------------------------

class OutboundEmail(BaseModel):
    """A validated email ready for dispatch."""

    provider: str = ""
    subject: str
    content: str = ""
    to: list[str]
    attachments: dict[str, bytes] = {}   # filename -> raw bytes
    retry: int = 0


class OutboundSMS(BaseModel):
    """A validated SMS ready for dispatch."""

    provider: str = ""
    phone: str
    content: str = ""
    retry: int = 0


# ---------------------------------------------------------------------------
# Inbound request bodies
# ---------------------------------------------------------------------------

class EmailRequest(BaseModel):
    """
    Body (or query string) of POST|GET /v1/email.

    ``to`` is a comma-separated recipient list. ``attachments`` maps a file
    name to its text content and is only accepted on POST.
    """
    model_config = {"extra": "ignore"}

    provider: str = ""
    subject: str = ""
    content: str = ""
    to: str = ""
    attachments: Optional[dict[str, str]] = None
    retry: int = Field(0, ge=0, le=MAX_RETRY)

    @field_validator("retry", mode="before")
    @classmethod
    def reject_bool_retry(cls, v: Any) -> Any:
        return _reject_bool(v)

    def to_message(self) -> OutboundEmail:
        if not self.subject:
            raise ValidationError("the subject field is required")

        recipients = [addr.strip() for addr in self.to.split(",") if addr.strip()]
        if not recipients:
            raise ValidationError("the to field is required")

        attachments = {
            name: content.encode("utf-8")
            for name, content in (self.attachments or {}).items()
        }
        return OutboundEmail(
            provider=self.provider.strip(),
            subject=self.subject,
            content=self.content,
            to=recipients,
            attachments=attachments,
            retry=self.retry,
        )


class SMSRequest(BaseModel):
    """Body (or query string) of POST|GET /v1/sms."""
    model_config = {"extra": "ignore"}

    provider: str = ""
    phone: str = ""
    content: str = ""
    retry: int = Field(0, ge=0, le=MAX_RETRY)

    @field_validator("retry", mode="before")
    @classmethod
    def reject_bool_retry(cls, v: Any) -> Any:
        return _reject_bool(v)

    def to_message(self) -> OutboundSMS:
        phone = self.phone.strip()
        if not phone:
            raise ValidationError("the phone field is required")
        return OutboundSMS(
            provider=self.provider.strip(),
            phone=phone,
            content=self.content,
            retry=self.retry,
        )


def _describe(exc: pydantic.ValidationError) -> str:
    """Render the first pydantic error as 'invalid <field>: <reason>'."""
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err.get("loc", ())) or "body"
    return f"invalid {field}: {err.get('msg', 'invalid value')}"


def parse_email_request(data: dict) -> OutboundEmail:
    """Validate a raw email request mapping. Raises ValidationError."""
    try:
        request = EmailRequest.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(_describe(exc))
    return request.to_message()


def parse_sms_request(data: dict) -> OutboundSMS:
    """Validate a raw SMS request mapping. Raises ValidationError."""
    try:
        request = SMSRequest.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(_describe(exc))
    return request.to_message()


# ---------------------------------------------------------------------------
# Response body
# ---------------------------------------------------------------------------

class SendResponse(BaseModel):
    """
    Response body for a successful send.

    failed_attempts counts the attempts that failed before the one that
    succeeded (other providers in "all" mode, or earlier retries).
    """
    status: str = "sent"
    provider: str
    attempts: int
    failed_attempts: int = 0
