"""Configuration settings for the application."""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class GeminiSettings:
    model: str = "gemini-2.0-flash"
    timeout_s: int = 30
    notes_timeout_s: int = 10
    probe_timeout_s: int = 15
    temperature: float = 0.7
    max_output_tokens: int = 4000


@dataclass
class OpenRouterSettings:
    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    models: List[str] = field(
        default_factory=lambda: [
            "openai/gpt-3.5-turbo",
            "anthropic/claude-3-haiku",
            "meta-llama/llama-3-8b-instruct:free",
        ]
    )
    timeout_s: int = 45
    referer: str = "https://draftwise.local"
    title: str = "Draftwise"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass
class CacheSettings:
    ttl_s: int = 60
    cleanup_interval_s: int = 600
    key_test_ttl_s: int = 300


@dataclass
class SecuritySettings:
    session_timeout_s: int = 30 * 60
    # (max requests, window seconds) per endpoint
    rate_limits: Dict[str, Tuple[int, int]] = field(
        default_factory=lambda: {
            "/api/gemini": (10, 60),
            "/api/gemini/test": (20, 60),
            "/api/slides/generate": (10, 60),
            "default": (50, 60),
        }
    )
    rate_limit_cleanup_interval_s: int = 300
    enable_hsts: bool = False


@dataclass
class SlideSettings:
    count: int = 20
    notes_retries: int = 2
    notes_concurrency: int = 5


class Settings:
    def __init__(self) -> None:
        self.env: str = os.getenv("APP_ENV", "development").lower()
        is_production = self.env == "production"

        self.log_level: str = os.getenv(
            "LOG_LEVEL", "INFO" if is_production or self.env == "test" else "DEBUG"
        ).upper()

        self.gemini = GeminiSettings(
            model=os.getenv("GEMINI_MODEL", GeminiSettings.model),
            timeout_s=_env_int("GEMINI_TIMEOUT_S", GeminiSettings.timeout_s),
        )
        self.openrouter = OpenRouterSettings(
            api_key=os.getenv("OPENROUTER_API_KEY", ""),
            base_url=os.getenv("OPENROUTER_BASE_URL", OpenRouterSettings.base_url),
            models=_env_list("OPENROUTER_MODELS", OpenRouterSettings().models),
            timeout_s=_env_int("OPENROUTER_TIMEOUT_S", OpenRouterSettings.timeout_s),
        )
        self.cache = CacheSettings(
            ttl_s=_env_int("CACHE_TTL_S", 300 if is_production else 60),
            cleanup_interval_s=_env_int(
                "CACHE_CLEANUP_INTERVAL_S", CacheSettings.cleanup_interval_s
            ),
        )
        self.security = SecuritySettings(
            session_timeout_s=_env_int(
                "SESSION_TIMEOUT_S", SecuritySettings.session_timeout_s
            ),
            rate_limit_cleanup_interval_s=_env_int(
                "RATE_LIMIT_CLEANUP_INTERVAL_S",
                SecuritySettings.rate_limit_cleanup_interval_s,
            ),
            enable_hsts=is_production,
        )
        self.slides = SlideSettings(count=_env_int("SLIDE_COUNT", SlideSettings.count))

    @property
    def is_production(self) -> bool:
        return self.env == "production"


settings = Settings()
