"""schedbot configuration schema - YAML + Pydantic + env override."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ════════════════════════════════════════════════════════════
# SUB-CONFIGS (nested BaseModel)
# ════════════════════════════════════════════════════════════


class ProviderConfig(BaseModel):
    """Single LLM provider."""

    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """LLM providers reachable through LiteLLM."""

    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    xai: ProviderConfig = Field(default_factory=ProviderConfig)
    gemini: ProviderConfig = Field(default_factory=ProviderConfig)
    groq: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)


def _default_models() -> dict[str, str]:
    return {
        "anthropic": "claude-sonnet-4-5-20250929",
        "openai": "gpt-4o",
        "xai": "grok-3",
        "gemini": "gemini-2.0-flash",
        "groq": "llama-3.3-70b-versatile",
        "openrouter": "anthropic/claude-sonnet-4.5",
    }


class ExecutorConfig(BaseModel):
    """LLM task executor settings.

    ``default_models`` is consulted only when an agent definition leaves
    ``model`` empty.
    """

    default_provider: str = "anthropic"
    default_models: dict[str, str] = Field(default_factory=_default_models)
    max_steps: int = 8
    temperature: float = 0.7
    max_tokens: int = 4096


class ProcessorConfig(BaseModel):
    """Batch bounds per tick."""

    schedule_batch_size: int = 50
    approved_batch_size: int = 20
    stale_after_minutes: int = 30  # 0 disables stale-execution recovery


class SchedulerConfig(BaseModel):
    """In-process ticker (APScheduler)."""

    enabled: bool = True
    tick_cron: str = "* * * * *"


class MessagingConfig(BaseModel):
    """Where completion notifications go. Empty webhook_url = store messenger."""

    webhook_url: str = ""
    webhook_token: str = ""
    timeout_s: float = 10.0


class DLQConfig(BaseModel):
    enabled: bool = True


class AuthConfig(BaseModel):
    """Cron endpoint protection. Empty cron_secret rejects every cron call."""

    cron_secret: str = ""


class DatabaseConfig(BaseModel):
    path: str = "data/schedbot.db"


# ════════════════════════════════════════════════════════════
# ROOT CONFIG (BaseSettings - env + .env support)
# ════════════════════════════════════════════════════════════


class Config(BaseSettings):
    """
    Root configuration.

    Priority: env vars > .env > YAML (init kwargs) > defaults

    Env override examples:
        SCHEDBOT_EXECUTOR__DEFAULT_PROVIDER=xai
        SCHEDBOT_DATABASE__PATH=data/prod.db
        SCHEDBOT_AUTH__CRON_SECRET=...
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDBOT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    processor: ProcessorConfig = Field(default_factory=ProcessorConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    messaging: MessagingConfig = Field(default_factory=MessagingConfig)
    dlq: DLQConfig = Field(default_factory=DLQConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # ── Computed properties ─────────────────────────────────

    @property
    def db_path(self) -> Path:
        return Path(self.database.path)

    # ── Provider helpers ────────────────────────────────────

    def get_provider(self, name: str) -> ProviderConfig | None:
        """Provider config by name (``None`` for unknown providers)."""
        provider = getattr(self.providers, name.lower(), None)
        return provider if isinstance(provider, ProviderConfig) else None

    def resolve_model(self, provider: str, model: str | None = None) -> str:
        """Build the LiteLLM model string ``provider/model``.

        An explicit model that already carries a provider prefix is kept as is.
        """
        name = model or self.executor.default_models.get(provider, "")
        if not name:
            raise ValueError(f"No model configured for provider '{provider}'")
        if name.startswith(f"{provider}/"):
            return name
        return f"{provider}/{name}"

    def get_api_base(self, provider: str) -> str | None:
        p = self.get_provider(provider)
        if p and p.api_base:
            return p.api_base
        if provider == "openrouter":
            return "https://openrouter.ai/api/v1"
        return None
