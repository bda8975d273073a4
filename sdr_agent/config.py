"""
sdr_agent/config.py — Central configuration loaded from environment variables.
All modules import settings from here; never read os.environ directly elsewhere.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── LLM provider ─────────────────────────────────────────────────────────
    llm_api_key: str = Field(..., description="API key for the chat-completion provider")
    llm_base_url: str = Field(
        default="https://api.x.ai/v1",
        description="Base URL of the OpenAI-compatible chat-completion API",
    )
    llm_model: str = Field(default="grok-2-latest", description="Model identifier")
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=2000, gt=0, description="Token cap per completion")
    llm_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-call HTTP timeout for the provider",
    )
    llm_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Total attempts per provider call (429 and 5xx are retried)",
    )

    # ── Database ──────────────────────────────────────────────────────────────
    database_url: str = Field(..., description="PostgreSQL connection URI")

    # ── Agent ─────────────────────────────────────────────────────────────────
    max_agent_iterations: int = Field(
        default=8,
        ge=1,
        description="Max provider rounds that may request tools before the agent gives up",
    )
    summarize_conversations: bool = Field(
        default=False,
        description="If True, ask the LLM for a summary whenever a conversation is saved",
    )

    # ── API ───────────────────────────────────────────────────────────────────
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )
    log_level: str = Field(default="INFO", description="Root logging level")


# Singleton, import this everywhere
settings = Settings()
