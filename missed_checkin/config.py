from dotenv import load_dotenv
load_dotenv()

import os
import logging

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


# Config
SERVICE_ACCOUNT = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "serviceAccountKey.json")
API_KEY = os.environ.get("API_KEY", "api-key")
SCAN_INTERVAL_MINUTES = _int_env("SCAN_INTERVAL_MINUTES", 5)  # scheduler cadence
SCAN_PAGE_SIZE = _int_env("SCAN_PAGE_SIZE", 500)  # users fetched per query page
MAKECALL_URL = os.environ.get("MAKECALL_URL", "").strip() or None
CALL_TIMEOUT_SECONDS = _int_env("CALL_TIMEOUT_SECONDS", 10)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
