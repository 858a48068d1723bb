"""Configuration and helper utilities for CryptoTrendBot.

This module loads environment variables, configures logging and exposes
constants used across the bot.
"""

import logging
import os
import re
from logging.handlers import WatchedFileHandler

from dotenv import load_dotenv

load_dotenv()


def parse_duration(value: str) -> int:
    """Return seconds for a duration string like '15m' or '1h'."""
    if value.isdigit():
        return int(value)
    match = re.fullmatch(r"(\d+)([dhms])", value.lower())
    if not match:
        raise ValueError("invalid interval format")
    num, unit = match.groups()
    factor = {"d": 86400, "h": 3600, "m": 60, "s": 1}[unit]
    return int(num) * factor


def format_interval(seconds: int) -> str:
    """Return a short string representation for a duration in seconds."""
    if seconds % 86400 == 0:
        return f"{seconds // 86400}d"
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


def parse_list(value: str) -> list[str]:
    """Split a comma separated string into upper-cased, non-empty items."""
    return [item.strip().upper() for item in value.split(",") if item.strip()]


BOT_NAME = "CryptoTrendBot"
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN")
WEBHOOK_URL = os.getenv("WEBHOOK_URL")
WEBHOOK_PORT = int(os.getenv("PORT", "8080"))

EXCHANGE_BASE_URL = os.getenv("EXCHANGE_BASE_URL") or "https://api.gemini.com/v2"
QUOTE_CURRENCY = os.getenv("QUOTE_CURRENCY", "usd").lower()
TICKER_CACHE_TTL = parse_duration(os.getenv("TICKER_CACHE_TTL", "60s"))
CANDLE_CACHE_TTL = parse_duration(os.getenv("CANDLE_CACHE_TTL", "30s"))
HTTP_TIMEOUT = parse_duration(os.getenv("HTTP_TIMEOUT", "10s"))

# candle granularities accepted by the exchange
TIMEFRAMES = ("1m", "5m", "15m", "30m", "1hr", "6hr", "1day")
SIGNAL_TIMEFRAMES = [
    tf.lower() for tf in parse_list(os.getenv("SIGNAL_TIMEFRAMES", "5m,15m,1hr,6hr"))
]
CANDLE_LIMIT = int(os.getenv("CANDLE_LIMIT", "100"))

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
ANALYSIS_TIMEOUT = parse_duration(os.getenv("ANALYSIS_TIMEOUT", "120s"))

NOTIFY_POLICY = os.getenv("NOTIFY_POLICY", "strong").lower()
NOTIFY_INTERVAL = parse_duration(os.getenv("NOTIFY_INTERVAL", "15m"))
ADMIN_CHAT_ID = int(os.environ["ADMIN_CHAT_ID"]) if os.getenv("ADMIN_CHAT_ID") else None
ADMIN_SYMBOLS = parse_list(os.getenv("ADMIN_SYMBOLS", "SOL"))

STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlite").lower()
DB_FILE = os.getenv("DB_PATH", "signals.db")

LOG_FILE = os.getenv("LOG_FILE")
_handlers = [logging.StreamHandler()]
if LOG_FILE:
    _handlers.append(WatchedFileHandler(LOG_FILE))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    handlers=_handlers,
    force=True,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)
