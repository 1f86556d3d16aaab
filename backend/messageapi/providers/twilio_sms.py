"""
"twilio" SMS provider.

Options:
  account_sid   Twilio account SID   (required)
  auth_token    Twilio auth token    (required)
  from          sending phone number (required)
"""

import logging
from typing import Mapping, Optional

from twilio.rest import Client

from messageapi.models.message import OutboundSMS
from messageapi.providers.base import SMS, SMSProvider, require

logger = logging.getLogger(__name__)

NAME = "twilio"


class TwilioSMSProvider(SMSProvider):
    """Send SMS through the Twilio REST API."""

    def __init__(self) -> None:
        super().__init__()
        self._client: Optional[Client] = None
        self._from: str = ""

    def load(self, config: Mapping[str, str]) -> None:
        account_sid = require(config, "account_sid")
        auth_token = require(config, "auth_token")
        from_number = require(config, "from")

        client = Client(account_sid, auth_token)
        with self._lock:
            self._client = client
            self._from = from_number
        logger.info("twilio sms provider loaded")

    def send_sms(self, message: OutboundSMS) -> None:
        with self._lock:
            client, from_number = self._client, self._from
        if client is None:
            raise RuntimeError("the twilio sms provider has not been configured")

        result = client.messages.create(
            body=message.content,
            from_=from_number,
            to=message.phone,
        )
        logger.info(f"twilio accepted sms: sid={result.sid}")


def register(registry) -> None:
    registry.register(SMS, NAME, TwilioSMSProvider())
