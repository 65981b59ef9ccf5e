# config.py
import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

# provider name -> (base url, default vision model, api key variable)
PROVIDERS: Dict[str, Dict[str, str]] = {
    "grok": {
        "base_url": "https://api.x.ai/v1",
        "model": "grok-2-vision-1212",
        "test_model": "grok-4-latest",
        "key_env": "GROK_API_KEY",
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-4o",
        "test_model": "gpt-4o-mini",
        "key_env": "OPENAI_API_KEY",
    },
}

APP_VERSION = "1.0.0"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed around."""

    provider: str = "grok"
    api_key: Optional[str] = None
    base_url: str = PROVIDERS["grok"]["base_url"]
    model: str = PROVIDERS["grok"]["model"]
    test_model: str = PROVIDERS["grok"]["test_model"]
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout: float = 60.0
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    port: int = 8001
    environment: str = "production"
    log_level: str = "INFO"
    rate_limit_enabled: bool = True

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def masked_key(self) -> str:
        if not self.api_key:
            return "<missing>"
        return f"{self.api_key[:4]}...{self.api_key[-4:]}" if len(self.api_key) > 8 else "***"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()

        provider = os.getenv("AI_PROVIDER", "grok").strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Unsupported AI_PROVIDER '{provider}'. Use one of: {', '.join(PROVIDERS)}")
        spec = PROVIDERS[provider]

        return cls(
            provider=provider,
            api_key=os.getenv(spec["key_env"]) or None,
            base_url=os.getenv("AI_BASE_URL", spec["base_url"]),
            model=os.getenv("REVIEW_MODEL", spec["model"]),
            test_model=os.getenv("TEST_MODEL", spec["test_model"]),
            max_tokens=int(os.getenv("AI_MAX_TOKENS", "2000")),
            temperature=float(os.getenv("AI_TEMPERATURE", "0.7")),
            timeout=float(os.getenv("AI_TIMEOUT", "60")),
            retry_attempts=int(os.getenv("AI_RETRY_ATTEMPTS", "3")),
            retry_delay_ms=int(os.getenv("AI_RETRY_DELAY_MS", "1000")),
            port=int(os.getenv("PORT", "8001")),
            environment=(os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "production").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
        )
