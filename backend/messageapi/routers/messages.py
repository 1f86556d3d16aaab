"""
Send endpoints.

  POST|GET /v1/email   provider, subject*, content, to*, attachments (POST), retry
  POST|GET /v1/sms     provider, phone*, content, retry

POST reads a JSON body; GET reads the query string and is rejected with 405
unless the active configuration sets allow_get.

Checks run in this order:
  1. no provider of the category configured        -> 501
  2. GET while allow_get is false                   -> 405
  3. body is not a JSON object / field is invalid   -> 400
  4. provider unknown or not enabled                -> 400
  5. transport failure after retries / fallback     -> 500

The active snapshot is read once per request and used for every step,
including the send itself.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from messageapi.deps import get_config_manager, get_dispatcher
from messageapi.errors import MessageAPIError, NoProviderConfigured, ValidationError
from messageapi.models.message import SendResponse, parse_email_request, parse_sms_request
from messageapi.providers.base import EMAIL, SMS
from messageapi.services.config_manager import ActiveConfig, ConfigManager
from messageapi.services.dispatcher import DispatchReport, Dispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _require_category(snapshot: ActiveConfig, category: str) -> None:
    if not snapshot.providers(category):
        raise NoProviderConfigured(f"no {category} provider is configured")


async def _read_arguments(request: Request, snapshot: ActiveConfig) -> dict:
    """
    Return the request arguments as a plain dict.

    POST: the JSON body, which must be an object.
    GET:  the query string (only when allow_get is set). Attachments cannot
          be sent this way and are dropped.
    """
    if request.method == "POST":
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError("the request body is not valid JSON")
        if not isinstance(data, dict):
            raise ValidationError("the request body must be a JSON object")
        return data

    if not snapshot.allow_get:
        raise HTTPException(status_code=405, detail="Method not allowed")

    data = dict(request.query_params)
    data.pop("attachments", None)
    return data


def _response(report: DispatchReport) -> SendResponse:
    return SendResponse(
        provider=report.provider,
        attempts=report.attempts,
        failed_attempts=len(report.failures),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.api_route("/email", methods=["GET", "POST"], response_model=SendResponse)
async def send_email(
    request: Request,
    config_manager: ConfigManager = Depends(get_config_manager),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Send an email through the named provider, the default, or "all"."""
    snapshot = config_manager.current()
    _require_category(snapshot, EMAIL)

    data = await _read_arguments(request, snapshot)
    message = parse_email_request(data)

    try:
        report = await run_in_threadpool(dispatcher.send_email, message, snapshot)
    except (HTTPException, MessageAPIError):
        raise
    except Exception as e:
        logger.exception(f"Unexpected error sending email: {e}")
        raise HTTPException(status_code=500, detail="Failed to send the email")

    return _response(report)


@router.api_route("/sms", methods=["GET", "POST"], response_model=SendResponse)
async def send_sms(
    request: Request,
    config_manager: ConfigManager = Depends(get_config_manager),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Send an SMS through the named provider, the default, or "all"."""
    snapshot = config_manager.current()
    _require_category(snapshot, SMS)

    data = await _read_arguments(request, snapshot)
    message = parse_sms_request(data)

    try:
        report = await run_in_threadpool(dispatcher.send_sms, message, snapshot)
    except (HTTPException, MessageAPIError):
        raise
    except Exception as e:
        logger.exception(f"Unexpected error sending sms: {e}")
        raise HTTPException(status_code=500, detail="Failed to send the sms")

    return _response(report)
