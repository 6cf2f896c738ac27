import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file FIRST
load_dotenv()

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


# Strip whitespace - a trailing space in an endpoint or key causes 404/401
def _getenv(key: str, default: str = None) -> str:
    val = os.getenv(key) or default
    return val.strip() if val else val


def _getbool(key: str, default: bool = False) -> bool:
    val = _getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed down explicitly."""

    generation_api_key: Optional[str]
    database_url: str = "sqlite+aiosqlite:///./rulebot.db"
    database_echo: bool = False
    generation_base_url: Optional[str] = GEMINI_OPENAI_BASE_URL
    generation_model: str = "gemini-2.0-flash"
    generation_temperature: float = 0.7
    generation_max_tokens: int = 800
    azure_openai_endpoint: Optional[str] = None
    azure_openai_api_version: str = "2024-08-01-preview"
    cors_allowed_origin: str = "http://localhost:4200"
    history_limit: int = 20
    max_message_length: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            generation_api_key=(
                _getenv("GENERATION_API_KEY")
                or _getenv("GEMINI_API_KEY")
                or _getenv("OPENAI_API_KEY")
            ),
            database_url=_getenv("DATABASE_URL", cls.database_url),
            database_echo=_getbool("DATABASE_ECHO"),
            generation_base_url=_getenv("GENERATION_BASE_URL", GEMINI_OPENAI_BASE_URL),
            generation_model=_getenv("GENERATION_MODEL", cls.generation_model),
            generation_temperature=float(_getenv("GENERATION_TEMPERATURE", "0.7")),
            generation_max_tokens=int(_getenv("GENERATION_MAX_TOKENS", "800")),
            azure_openai_endpoint=_getenv("AZURE_OPENAI_ENDPOINT"),
            azure_openai_api_version=_getenv(
                "AZURE_OPENAI_API_VERSION", cls.azure_openai_api_version
            ),
            cors_allowed_origin=_getenv("CORS_ALLOWED_ORIGIN", cls.cors_allowed_origin),
            history_limit=int(_getenv("HISTORY_LIMIT", "20")),
            max_message_length=int(_getenv("MAX_MESSAGE_LENGTH", "8000")),
            log_level=_getenv("LOG_LEVEL", cls.log_level).upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        # Validate required environment variables
        if not self.database_url:
            raise ValueError("DATABASE_URL environment variable is not set")
        if not self.generation_api_key:
            raise ValueError(
                "GENERATION_API_KEY environment variable is not set "
                "(GEMINI_API_KEY or OPENAI_API_KEY are also accepted)"
            )
        if self.history_limit < 1:
            raise ValueError("HISTORY_LIMIT must be a positive integer")
        if self.max_message_length < 1:
            raise ValueError("MAX_MESSAGE_LENGTH must be a positive integer")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
