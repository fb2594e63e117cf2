import os

SUPPORTED_CURRENCIES = ("USD", "UGX", "EUR", "GBP", "JPY", "CAD", "AUD", "CHF", "CNY", "INR")
FALLBACK_CURRENCY = "UGX"

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
TOP_GROUPS_LIMIT = 5
MIN_REPORT_YEAR = 1970
MAX_REPORT_YEAR = 2100


def get_system_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", FALLBACK_CURRENCY).strip().upper()
    if raw not in SUPPORTED_CURRENCIES:
        return FALLBACK_CURRENCY
    return raw


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
LOG_FILE = os.getenv("LOG_FILE") or None
SYSTEM_DEFAULT_CURRENCY = get_system_default_currency()
