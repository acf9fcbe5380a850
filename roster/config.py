"""
Roster configuration — all environment variables in one place.

Read from environment at import time.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Remote store
    API_URL: str = os.environ.get("ROSTER_API_URL", "http://localhost:8000/api/v1")
    TIMEOUT: float = float(os.environ.get("ROSTER_TIMEOUT", "10"))
    MAX_LIST_PAGES: int = int(os.environ.get("ROSTER_MAX_LIST_PAGES", "100"))

    # Table view
    PAGE_SIZE: int = int(os.environ.get("ROSTER_PAGE_SIZE", "20"))

    # CSV import throttling
    IMPORT_BATCH_SIZE: int = int(os.environ.get("ROSTER_IMPORT_BATCH_SIZE", "10"))
    IMPORT_BATCH_DELAY: float = float(os.environ.get("ROSTER_IMPORT_BATCH_DELAY", "0.1"))

    # Logging
    LOG_LEVEL: str = os.environ.get("ROSTER_LOG_LEVEL", "WARNING")


settings = Settings()
