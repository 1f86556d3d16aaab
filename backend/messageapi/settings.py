"""
Process-level settings.
Read once from the environment (and a local .env file, if present).
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Shared secret required on POST /v1/config. Empty disables the check.
ADMIN_KEY = os.getenv("MESSAGEAPI_ADMIN_KEY", "")

# Optional JSON configuration document applied at startup.
CONFIG_FILE = os.getenv("MESSAGEAPI_CONFIG_FILE", "")

LOG_LEVEL = os.getenv("MESSAGEAPI_LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
HOST_PORT = int(os.getenv("HOST_PORT", "8000"))

# HTTPS is served only when both files are set.
TLS_CERT_FILE = os.getenv("MESSAGEAPI_TLS_CERT_FILE", "")
TLS_KEY_FILE = os.getenv("MESSAGEAPI_TLS_KEY_FILE", "")
