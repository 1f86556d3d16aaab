#!/usr/bin/env python3
"""
Dev helper: send a test email or SMS to a running Message API server, or
upload a configuration document.

Usage
-----
# Email through the default provider, targeting localhost:8000
python scripts/send_test_message.py email --to you@example.com

# Email through every enabled provider until one succeeds, with a file attached
python scripts/send_test_message.py email --to you@example.com --provider all --file notes.txt

# SMS with two retries
python scripts/send_test_message.py sms --phone +15550100 --provider twilio --retry 2

# Replace the server configuration
python scripts/send_test_message.py config --file config.json

# Show the current (redacted) configuration
python scripts/send_test_message.py config

Environment / .env
------------------
MESSAGEAPI_ADMIN_KEY   Admin key sent with configuration uploads.
                       Overridden by --key.
"""

import argparse
import json
import os
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def _build_email_payload(args: argparse.Namespace) -> dict:
    payload = {
        "subject": args.subject,
        "content": args.content,
        "to": args.to,
        "retry": args.retry,
    }
    if args.provider:
        payload["provider"] = args.provider
    if args.file:
        file_path = Path(args.file)
        payload["attachments"] = {file_path.name: file_path.read_text()}
    return payload


def _build_sms_payload(args: argparse.Namespace) -> dict:
    payload = {
        "phone": args.phone,
        "content": args.content,
        "retry": args.retry,
    }
    if args.provider:
        payload["provider"] = args.provider
    return payload


def _build_config_payload(args: argparse.Namespace) -> dict:
    payload = json.loads(Path(args.file).read_text())
    key = args.key or os.getenv("MESSAGEAPI_ADMIN_KEY", "")
    if key:
        payload["key"] = key
    return payload


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def _redact_key(payload: dict) -> dict:
    display = dict(payload)
    if "key" in display:
        display["key"] = "<admin key>"
    return display


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="send_test_message.py",
        description="Send a test message or configuration to the Message API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_message.py email --to you@example.com
              python scripts/send_test_message.py sms --phone +15550100
              python scripts/send_test_message.py config --file config.json
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Server base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    email = sub.add_parser("email", help="Send a test email")
    email.add_argument("--to", required=True, help="Comma-separated recipients")
    email.add_argument("--subject", default="Test message")
    email.add_argument("--content", default="This is a test message.")
    email.add_argument("--provider", default="", help='Provider name or "all"')
    email.add_argument("--retry", type=int, default=0)
    email.add_argument("--file", default=None, metavar="PATH", help="Text file to attach")

    sms = sub.add_parser("sms", help="Send a test SMS")
    sms.add_argument("--phone", required=True)
    sms.add_argument("--content", default="This is a test message.")
    sms.add_argument("--provider", default="", help='Provider name or "all"')
    sms.add_argument("--retry", type=int, default=0)

    conf = sub.add_parser("config", help="Show or replace the server configuration")
    conf.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="JSON configuration document to upload. Omit to show the current one.",
    )
    conf.add_argument("--key", default=None, help="Admin key (default: MESSAGEAPI_ADMIN_KEY)")
    return parser


def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    args = _parser().parse_args()
    base = args.url.rstrip("/")

    if args.command == "config" and not args.file:
        endpoint, payload = f"{base}/v1/config", None
    elif args.command == "config":
        endpoint, payload = f"{base}/v1/config", _build_config_payload(args)
    elif args.command == "email":
        endpoint, payload = f"{base}/v1/email", _build_email_payload(args)
    else:
        endpoint, payload = f"{base}/v1/sms", _build_sms_payload(args)

    print(f"Endpoint  : {endpoint}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(_redact_key(payload) if payload else None, indent=2))
        return 0

    try:
        if payload is None:
            response = httpx.get(endpoint, timeout=30)
        else:
            response = httpx.post(endpoint, json=payload, timeout=60)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the server running? Start it with:\n"
            "  uvicorn messageapi.main:app --reload",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
