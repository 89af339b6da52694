"""Centralised settings for the storefront product scraper.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Fetcher
    # ------------------------------------------------------------------
    fetch_timeout: float = field(
        default_factory=lambda: float(os.environ.get("FETCH_TIMEOUT", "15.0"))
    )
    max_redirects: int = field(
        default_factory=lambda: int(os.environ.get("MAX_REDIRECTS", "10"))
    )

    # ------------------------------------------------------------------
    # Fallback synthesizer (generative model)
    # ------------------------------------------------------------------
    synth_max_chars: int = field(
        default_factory=lambda: int(os.environ.get("SYNTH_MAX_CHARS", "80000"))
    )
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "openai")
    )
    llm_api_key: str = field(
        default_factory=lambda: os.environ.get(
            "LLM_API_KEY", os.environ.get("OPENAI_API_KEY", "")
        )
    )
    llm_base_url: str = field(
        default_factory=lambda: os.environ.get("LLM_BASE_URL", "")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "ministral-3:8b")
    )
    llm_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LLM_TIMEOUT", "60.0"))
    )

    # ------------------------------------------------------------------
    # Admin identity (Supabase auth + user_roles table)
    # ------------------------------------------------------------------
    supabase_url: str = field(
        default_factory=lambda: os.environ.get("SUPABASE_URL", "")
    )
    supabase_anon_key: str = field(
        default_factory=lambda: os.environ.get("SUPABASE_ANON_KEY", "")
    )
    admin_role: str = field(
        default_factory=lambda: os.environ.get("ADMIN_ROLE", "admin")
    )
    auth_timeout: float = field(
        default_factory=lambda: float(os.environ.get("AUTH_TIMEOUT", "10.0"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    @property
    def llm_configured(self) -> bool:
        """``True`` when the generative fallback has what it needs to run.

        A local Ollama model needs no key; hosted providers do.
        """
        if self.llm_provider == "ollama":
            return True
        return bool(self.llm_api_key)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


# Module-level singleton, import this everywhere:
#   from storefront.config import settings
settings = Settings()


def configure_logging() -> None:
    """Configure root logging from ``settings.log_level`` (no-op if already set)."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
