"""
Environment-driven settings.

Every recognised option is read from the process environment once and cached;
call ``get_settings.cache_clear()`` after changing the environment (tests do).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple


def _split_terms(raw: str) -> Tuple[str, ...]:
    return tuple(t.strip().lower() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class Settings:
    # Hosted backend
    database_url: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    pitch_deck_bucket: str = "pitch-decks"

    # AI providers
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    google_ai_api_key: Optional[str] = None
    openai_model: str = "gpt-4"
    groq_model: str = "mixtral-8x7b-32768"
    gemini_model: str = "gemini-pro"
    ai_gateway_url: str = "http://localhost:8000"

    # Pitch rooms
    ai_reply_delay_seconds: float = 1.0
    ai_trigger_terms: Tuple[str, ...] = field(default_factory=lambda: ("minecraft",))

    # Uploads / logging
    max_upload_size_mb: int = 10
    enable_cloud_logging: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
        pitch_deck_bucket=os.getenv("PITCH_DECK_BUCKET", "pitch-decks"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        groq_api_key=os.getenv("GROQ_API_KEY"),
        google_ai_api_key=os.getenv("GOOGLE_AI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4"),
        groq_model=os.getenv("GROQ_MODEL", "mixtral-8x7b-32768"),
        gemini_model=os.getenv("GOOGLE_AI_MODEL", "gemini-pro"),
        ai_gateway_url=os.getenv("AI_GATEWAY_URL", "http://localhost:8000"),
        ai_reply_delay_seconds=float(os.getenv("AI_REPLY_DELAY_SECONDS", "1.0")),
        ai_trigger_terms=_split_terms(os.getenv("AI_TRIGGER_TERMS", "minecraft")),
        max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", "10")),
        enable_cloud_logging=os.getenv("ENABLE_CLOUD_LOGGING", "false").lower() == "true",
    )
