"""
Configuration and logging setup for the Bank Analytics API.

Environment variables are read only here. A ``.env`` file is loaded for
local development without overriding variables already set.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    database_name: str = "sample_analytics"
    accounts_collection: str = "accounts"
    customers_collection: str = "customers"
    transactions_collection: str = "transactions"
    log_level: str = "INFO"
    port: int = 8080


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name, default)
    if v is None:
        return None
    v = v.strip()
    return v if v else default


def get_settings() -> Settings:
    load_dotenv(override=False)

    return Settings(
        database_url=_getenv("DATABASE_URL"),
        database_name=_getenv("DATABASE_NAME", "sample_analytics"),
        accounts_collection=_getenv("ACCOUNTS_COLLECTION", "accounts"),
        customers_collection=_getenv("CUSTOMERS_COLLECTION", "customers"),
        transactions_collection=_getenv("TRANSACTIONS_COLLECTION", "transactions"),
        log_level=_getenv("LOG_LEVEL", "INFO"),
        port=int(_getenv("PORT", "8080")),
    )


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a console handler.

    Does nothing if the root logger already has handlers, so repeated
    calls (tests, several ``create_app`` calls) are harmless.
    """
    logger = logging.getLogger()
    if logger.handlers:
        return

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
