"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/bridge.db",
        description="SQLAlchemy connection string.",
    )
    auto_create_db_schema: bool = Field(
        default=True,
        description="If true, creates tables automatically on startup (useful for local/dev).",
    )

    # OpenAI Realtime (AI call leg)
    openai_api_key: str | None = Field(default=None)
    realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    realtime_model: str = Field(default="gpt-4o-realtime-preview-2024-10-01")
    realtime_voice: str = Field(default="alloy")
    realtime_temperature: float = Field(default=0.8, ge=0.6, le=1.2)
    realtime_audio_format: str = Field(
        default="g711_ulaw",
        description="Codec shared by Twilio and the realtime endpoint; audio is never transcoded.",
    )
    realtime_turn_detection: str = Field(default="server_vad")
    realtime_transcription_model: str = Field(default="whisper-1")
    realtime_settle_delay_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Pause between opening the realtime socket and sending session.update.",
    )
    realtime_verbose_event_types: list[str] = Field(
        default_factory=lambda: [
            "response.content.done",
            "rate_limits.updated",
            "input_audio_buffer.committed",
            "input_audio_buffer.speech_stopped",
            "input_audio_buffer.speech_started",
            "session.created",
            "response.text.done",
        ],
        description="Realtime event types that are logged but otherwise ignored.",
    )

    # Text completion (post-call extraction, SMS replies)
    llm_provider: Literal["openai", "self_hosted_vllm"] = Field(default="openai")
    llm_endpoint: str | None = Field(
        default=None, description="Base URL for a self-hosted or proxied inference server."
    )
    llm_api_key: str | None = Field(
        default=None, description="Falls back to OPENAI_API_KEY when unset."
    )
    llm_model: str = Field(default="gpt-4o")

    # Twilio (Voice + SMS)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_from_number: str | None = Field(default=None, description="E.164, e.g. +1555...")
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    call_greeting: str = Field(
        default="Hi, you have called Bart's Automotive Centre. How can we help?",
    )

    data_dir: Path = Field(default=Path("./data"))

    @field_validator("data_dir")
    @classmethod
    def ensure_data_dir(cls, value: Path) -> Path:
        value.mkdir(parents=True, exist_ok=True)
        return value

    @property
    def effective_llm_api_key(self) -> str | None:
        return self.llm_api_key or self.openai_api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
