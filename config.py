"""
Application Configuration
Centralized configuration management for the operations dashboard.
"""
import os
from typing import Optional

from dotenv import load_dotenv

from utils.logger import log_error

load_dotenv()


class Config:
    """Application configuration with environment variable support."""

    # === Database & API ===
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")

    # === Timeouts (seconds) ===
    DB_TIMEOUT: int = int(os.getenv("DB_TIMEOUT", "20"))
    READER_TIMEOUT: float = float(os.getenv("READER_TIMEOUT", "10"))
    HTTP_TIMEOUT: int = int(os.getenv("HTTP_TIMEOUT", "60"))

    # === Calendar ===
    UPCOMING_LIMIT: int = 6
    URGENT_DAYS: int = 7
    DAY_PREVIEW_LIMIT: int = 2
    DAY_DOT_LIMIT: int = 4
    MAX_ROWS_PER_SOURCE: int = 1000  # Safety limit

    # === Categories ===
    class Categories:
        MISSION = "Oppdrag"
        MAINTENANCE = "Vedlikehold"
        DOCUMENT = "Dokument"
        INCIDENT = "Hendelse"
        MEETING = "Møte"
        NEWS = "Nyhet"
        OTHER = "Annet"

        # Offered in the custom event form
        CUSTOM_TYPES = ["Møte", "Oppdrag", "Vedlikehold", "Dokument", "Nyhet", "Annet"]

    # === Category colors (dots, chips, legend) ===
    CATEGORY_COLORS = {
        "Oppdrag": "#1565C0",
        "Hendelse": "#EF4444",
        "Dokument": "#60A5FA",
        "Vedlikehold": "#F97316",
        "Møte": "#A855F7",
        "Nyhet": "#A855F7",
        "Annet": "#9CA3AF",
    }
    DEFAULT_CATEGORY_COLOR = "#9CA3AF"

    # === Routes ===
    class Routes:
        LOGIN = "login"
        DASHBOARD = "dashboard"
        CALENDAR = "calendar"

    @classmethod
    def category_color(cls, category: Optional[str]) -> str:
        return cls.CATEGORY_COLORS.get(category or "", cls.DEFAULT_CATEGORY_COLOR)

    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration."""
        errors = []
        if not cls.SUPABASE_URL:
            errors.append("SUPABASE_URL is required")
        if not cls.SUPABASE_KEY:
            errors.append("SUPABASE_KEY is required")

        for err in errors:
            log_error(f"CONFIG ERROR: {err}")
        return not errors

