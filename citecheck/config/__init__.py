import logging
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("citecheck")

from .constants import (
    LLM_CONFIG,
    TOOL_LIMITS,
    TOOL_TIMEOUTS,
    RATE_LIMIT_CONFIG,
    ORCHESTRATION_CONFIG,
    BROWSER_HEADERS,
    SEARCH_API_CONFIG,
    HTML_EXTRACTION,
)


class Settings(BaseSettings):
    """Loads all environment variables into a single, accessible object."""
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    GEMINI_API_KEY: Optional[str] = None
    LINKUP_API_KEY: Optional[str] = None

    GEMINI_MODEL: str = "gemini-3-flash-preview"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"

    PROGRESS_BACKEND: Literal["sqlite", "kv"] = "sqlite"
    PROGRESS_DB_DIR: str = ".citecheck/progress"
    BLOB_STORE_DIR: str = ".citecheck/blobs"

    @property
    def GEMINI_ENDPOINT(self) -> str:
        return f"{self.GEMINI_BASE_URL}/v1beta/models/{self.GEMINI_MODEL}:generateContent"


settings = Settings()


def get_settings() -> Settings:
    return settings


REQUIRED_KEYS = ["GEMINI_API_KEY"]
OPTIONAL_KEYS = ["LINKUP_API_KEY"]


def check_api_keys_on_startup(current: Optional[Settings] = None) -> None:
    """Log which API keys are missing; nothing here is fatal until a document runs."""
    current = current or settings
    missing = [k for k in REQUIRED_KEYS if not getattr(current, k)]
    if missing:
        logger.warning("Missing API keys: %s. Documents will be marked failed.", ", ".join(missing))
    else:
        logger.info("All required API keys are configured.")

    for key_name in OPTIONAL_KEYS:
        if not getattr(current, key_name):
            logger.info("%s is not set; web_search tool will be unavailable.", key_name)


__all__ = [
    "logger",
    "Settings",
    "settings",
    "get_settings",
    "check_api_keys_on_startup",
    "LLM_CONFIG",
    "TOOL_LIMITS",
    "TOOL_TIMEOUTS",
    "RATE_LIMIT_CONFIG",
    "ORCHESTRATION_CONFIG",
    "BROWSER_HEADERS",
    "SEARCH_API_CONFIG",
    "HTML_EXTRACTION",
]
