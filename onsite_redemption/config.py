from __future__ import annotations

import os
from pathlib import Path


class Config:
    """Application configuration"""
    DATABASE_URL = os.getenv("ONSITE_DATABASE_URL", "sqlite:///./onsite_redemption.db")
    LOG_LEVEL = os.getenv("ONSITE_LOG_LEVEL", "INFO")
    DEDUP_TTL_SECONDS = float(os.getenv("ONSITE_DEDUP_TTL_SECONDS", "3"))
    DEDUP_MAX_ENTRIES = int(os.getenv("ONSITE_DEDUP_MAX_ENTRIES", "512"))
    TEMPLATE_DIR = Path(os.getenv("ONSITE_TEMPLATE_DIR", "./templates"))
    OUTPUT_DIR = Path(os.getenv("ONSITE_OUTPUT_DIR", "./certificates"))
    API_URL = os.getenv("ONSITE_API_URL", "http://localhost:8000")
    HTTP_TIMEOUT = float(os.getenv("ONSITE_HTTP_TIMEOUT", "10"))
    DEFAULT_ACTOR = "scanner"
    RECENT_SCANS_LIMIT = 10
    RECENT_SCANS_MAX = 100

    @classmethod
    def init(cls):
        """Initialize configuration"""
        cls.TEMPLATE_DIR.mkdir(parents=True, exist_ok=True)
        cls.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
