"""
Runtime configuration read from the environment.

NOTE: load_dotenv() is called by the application entry points (main.py and
the scripts) BEFORE these classes are instantiated.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","message":"%(message)s","module":"%(name)s"}'


def configure_logging(level: Optional[str] = None):
    """Structured-ish JSON log lines on the root logger."""
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format=LOG_FORMAT,
    )


class StoreConfig:
    """Configuration for the record store and report pipeline."""

    def __init__(self):
        self.store_type = os.getenv("RECORD_STORE_TYPE", "sqlalchemy").lower()
        self.url = os.getenv("RECORD_STORE_URL") or os.getenv("DATABASE_URL")
        self.api_key = os.getenv("RECORD_STORE_API_KEY")
        self.data_dir = os.getenv("RECORD_STORE_DATA_DIR")
        self.narrative_timeout = float(os.getenv("NARRATIVE_TIMEOUT_SECONDS", "20"))

    def store_options(self) -> dict:
        """Config dict handed to the record store factory."""
        options = {}
        if self.url:
            options["url"] = self.url
        if self.api_key:
            options["api_key"] = self.api_key
        if self.data_dir:
            options["data_dir"] = self.data_dir
        return options
