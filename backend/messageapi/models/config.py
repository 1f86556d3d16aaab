"""
Pydantic model for the configuration document (POST /v1/config, startup file).

Types are strict: "true" where a bool is expected or 25 where a string is
expected is rejected, not coerced. Every provider option value is a string;
providers parse them themselves in load().
"""

from pydantic import BaseModel, StrictBool, StrictStr


class ConfigDocument(BaseModel):
    """
    The full configuration accepted by the service.

    An update always replaces the whole document; omitted fields fall back to
    their defaults, not to the previously active values.
    """
    model_config = {"extra": "ignore", "frozen": True}

    # Allow GET (query string) requests on the send endpoints.
    allow_get: StrictBool = False

    # Skip providers that are not registered instead of rejecting the document.
    ignore_not_supported_provider: StrictBool = False

    # Used when a send request does not name a provider.
    default_email_provider: StrictStr = ""
    default_sms_provider: StrictStr = ""

    # provider name -> provider options
    emails: dict[StrictStr, dict[StrictStr, StrictStr]] = {}
    smses: dict[StrictStr, dict[StrictStr, StrictStr]] = {}
