"""Application configuration: environment variables and derived constants.

Loads the bot token, API root, webhook settings and request timeout from the
environment via ``python-dotenv``.  All values are resolved at import time
so other modules can ``from config import …`` without repeated lookups.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from core.logger import TelewireLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()

# ── Logger (used for startup diagnostics at the bottom of this module) ───────
logger = TelewireLogger.get_logger()

_DEFAULT_WEBHOOK_PORT = 8443


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_port(raw: str | None, default: int = _DEFAULT_WEBHOOK_PORT) -> int:
    """Parse a TCP port, falling back to *default* for missing or invalid input."""
    if not raw:
        return default
    try:
        port = int(raw.strip())
    except ValueError:
        logger.warning("Invalid WEBHOOK_PORT, using default", extra={"raw": raw, "default": default})
        return default
    if not 0 <= port <= 65535:
        logger.warning("WEBHOOK_PORT out of range, using default", extra={"raw": raw, "default": default})
        return default
    return port


def _parse_timeout(raw: str | None) -> float | None:
    """Parse a positive number of seconds; anything else means "no timeout"."""
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid REQUEST_TIMEOUT, ignoring", extra={"raw": raw})
        return None
    return value if value > 0 else None


# ── Public constants ─────────────────────────────────────────────────────────

BOT_TOKEN: str | None = os.environ.get("BOT_TOKEN")
API_URL: str = os.environ.get("API_URL", "https://api.telegram.org").rstrip("/")
REQUEST_TIMEOUT: float | None = _parse_timeout(os.environ.get("REQUEST_TIMEOUT"))

WEBHOOK_HOST: str | None = os.environ.get("WEBHOOK_HOST")
WEBHOOK_PORT: int = _parse_port(os.environ.get("WEBHOOK_PORT"))
WEBHOOK_PATH: str = os.environ.get("WEBHOOK_PATH", "/webhook")
WEBHOOK_CERT_PATH: str | None = os.environ.get("WEBHOOK_CERT_PATH")
WEBHOOK_KEY_PATH: str | None = os.environ.get("WEBHOOK_KEY_PATH")


# ── Startup diagnostics ─────────────────────────────────────────────────────

if BOT_TOKEN:
    logger.info("Config loaded, BOT_TOKEN is set", extra={"api_url": API_URL})
else:
    logger.warning("Config loaded, BOT_TOKEN is NOT set")

if WEBHOOK_CERT_PATH and WEBHOOK_KEY_PATH:
    logger.info("Webhook certificate configured", extra={"cert_path": WEBHOOK_CERT_PATH})
elif WEBHOOK_CERT_PATH or WEBHOOK_KEY_PATH:
    logger.warning("Only one of WEBHOOK_CERT_PATH / WEBHOOK_KEY_PATH is set; a self-signed pair will be generated")
