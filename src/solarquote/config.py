"""Startup configuration.

Environment variables are read once at startup (after ``load_dotenv()``).
A missing required variable stops the process with a clear message rather
than failing on the first backend call.
"""

import os
import sys
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "SOLARQUOTE_API_BASE_URL",
]

OPTIONAL_VARS = [
    "SOLARQUOTE_API_KEY",
    "SOLARQUOTE_STORE_PATH",
    "SOLARQUOTE_BRAND",
    "SOLARQUOTE_COMPANY_ID",
    "SOLARQUOTE_TIMEZONE",
    "GOOGLE_MAPS_API_KEY",
    "LOG_LEVEL",
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    api_key: str = ""
    store_path: str = ""
    brand: str = "renewables"
    company_id: int = 3
    timezone: str = "Europe/Dublin"
    maps_api_key: str = ""
    log_level: str = "INFO"


def validate_config() -> None:
    """Validate environment variables at startup.

    Exits the process with a clear error if any required variable is missing
    or empty.  Logs warnings for missing optional variables.
    """
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        print(
            f"\nFATAL: Missing required environment variables:\n"
            f"  {', '.join(missing)}\n"
            f"\nSet them in .env or the process environment.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    validate_config()

    company_id = os.getenv("SOLARQUOTE_COMPANY_ID", "3")
    try:
        company = int(company_id)
    except ValueError:
        logger.warning("SOLARQUOTE_COMPANY_ID=%r is not an integer, using 3", company_id)
        company = 3

    return Settings(
        api_base_url=os.getenv("SOLARQUOTE_API_BASE_URL", ""),
        api_key=os.getenv("SOLARQUOTE_API_KEY", ""),
        store_path=os.getenv("SOLARQUOTE_STORE_PATH", ""),
        brand=os.getenv("SOLARQUOTE_BRAND") or "renewables",
        company_id=company,
        timezone=os.getenv("SOLARQUOTE_TIMEZONE") or "Europe/Dublin",
        maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY", ""),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL") or "INFO").upper(),
        format=LOG_FORMAT,
    )
