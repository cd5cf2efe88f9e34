"""
Runtime configuration.
Single source of truth for every environment variable the service reads.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

# The published frontend always gets CORS access.
DEFAULT_ORIGINS = ["https://maxger99.github.io"]


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() == "true"


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    fitbit_client_id: str = ""
    fitbit_client_secret: str = ""
    fitbit_redirect_uri: str = ""

    llm_api_key: str = ""
    llm_api_url: str = "https://models.github.ai/inference"
    llm_model: str = "openai/gpt-4o-mini"
    github_token: str = ""

    min_time_between_calls_ms: int = 5000
    llm_max_retries: int = 1
    llm_retry_base_delay: float = 4.0

    demo_mode: bool = False
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ORIGINS))
    session_secret: str = "your-secret-key"
    environment: str = "development"

    response_log_path: str = "responses.json"
    static_dir: str = "public"
    port: int = 3001

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and .env, if present).

        LLM_API_KEY wins over GITHUB_TOKEN, which is accepted for GitHub Models.
        """
        github_token = os.getenv("GITHUB_TOKEN", "")
        origins = list(DEFAULT_ORIGINS)
        for origin in (os.getenv("ALLOWED_ORIGIN") or "").split(","):
            origin = origin.strip()
            if origin and origin not in origins:
                origins.append(origin)

        return cls(
            fitbit_client_id=os.getenv("FITBIT_CLIENT_ID", ""),
            fitbit_client_secret=os.getenv("FITBIT_CLIENT_SECRET", ""),
            fitbit_redirect_uri=os.getenv("FITBIT_REDIRECT_URI", ""),
            llm_api_key=os.getenv("LLM_API_KEY") or github_token,
            llm_api_url=os.getenv("LLM_API_URL") or cls.llm_api_url,
            llm_model=os.getenv("LLM_MODEL") or cls.llm_model,
            github_token=github_token,
            min_time_between_calls_ms=int(_env_float("MIN_TIME_BETWEEN_CALLS", 5000)),
            llm_max_retries=max(0, int(_env_float("LLM_MAX_RETRIES", 1))),
            llm_retry_base_delay=_env_float("LLM_RETRY_BASE_DELAY", 4.0),
            demo_mode=_env_bool("DEMO_MODE"),
            allowed_origins=origins,
            session_secret=os.getenv("SESSION_SECRET") or cls.session_secret,
            environment=os.getenv("ENVIRONMENT") or os.getenv("NODE_ENV") or "development",
            response_log_path=os.getenv("RESPONSE_LOG_PATH") or cls.response_log_path,
            static_dir=os.getenv("STATIC_DIR") or cls.static_dir,
            port=int(_env_float("PORT", 3001)),
        )

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_url and self.llm_model and self.llm_api_key)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def min_interval_seconds(self) -> float:
        return self.min_time_between_calls_ms / 1000.0
