from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv


load_dotenv()


DEFAULT_CORS_ORIGINS = (
    "http://localhost:4200",
    "https://dnd-ai.pages.dev",
    "https://rpg-play-ai.com",
    "https://app.rpg-play-ai.com",
)
DEFAULT_CORS_ORIGIN_REGEX = r"https://([a-z0-9-]+\.)*rpg-play-ai\.com"


class ConfigurationError(RuntimeError):
    """Raised when a required setting is absent or unparsable."""


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Instances are
    immutable and handed explicitly to the components that need them.
    """

    google_api_key: str
    app_env: str = "development"
    port: int = 3000
    gemini_model: str = "gemini-2.5-flash"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.75
    max_output_tokens: int = 8192
    max_retries: int = 3
    request_timeout: float = 60.0
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    cors_origin_regex: str = DEFAULT_CORS_ORIGIN_REGEX
    log_level: str = "INFO"

    @property
    def generate_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/models/{self.gemini_model}:generateContent"

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.getenv("GOOGLE_API_KEY", "").strip()
        if not api_key:
            raise ConfigurationError(
                "GOOGLE_API_KEY is not set. Please configure it in environment or .env"
            )

        try:
            return cls(
                google_api_key=api_key,
                app_env=os.getenv("APP_ENV", "development"),
                port=int(os.getenv("PORT", "3000")),
                gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
                api_base=os.getenv(
                    "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
                ),
                temperature=float(os.getenv("MODEL_TEMPERATURE", "0.75")),
                max_output_tokens=int(os.getenv("MODEL_MAX_OUTPUT_TOKENS", "8192")),
                max_retries=int(os.getenv("MAX_RETRIES", "3")),
                request_timeout=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60")),
                cors_origins=_split_csv(os.getenv("CORS_ORIGINS", ""))
                or DEFAULT_CORS_ORIGINS,
                cors_origin_regex=os.getenv("CORS_ORIGIN_REGEX", DEFAULT_CORS_ORIGIN_REGEX),
                log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
