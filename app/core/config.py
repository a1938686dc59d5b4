"""Configuration management for the Muse AI orchestration core."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Provider credentials
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key (chatgpt provider)")
    GOOGLE_AI_API_KEY: str | None = Field(default=None, description="Google AI API key (gemini provider)")

    # Agent path shared secret
    MM_AI_AGENT_KEY: str | None = Field(
        default=None, description="Bearer secret for machine-to-machine posting"
    )

    # Environment
    MUSE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Provider models and call budget
    CHATGPT_MODEL: str = Field(default="gpt-4o-mini", description="Model for the chatgpt provider")
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash", description="Model for the gemini provider")
    MAX_OUTPUT_TOKENS: int = Field(default=1024, description="Max output tokens per generation")
    GENERATION_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Per-call timeout enforced by the provider gateway"
    )

    # Provider settings record
    PROVIDER_SETTINGS_TTL_SECONDS: float = Field(
        default=30.0, description="TTL of the cached provider settings record"
    )
    DEFAULT_PRIMARY_PROVIDER: str = Field(
        default="gemini", description="Primary provider when no settings row exists"
    )
    DEFAULT_FALLBACK_PROVIDER: str | None = Field(
        default="chatgpt", description="Fallback provider when no settings row exists"
    )

    # Analysis session
    JOB_RETENTION_SECONDS: float = Field(
        default=3600.0, description="How long finished jobs stay addressable before eviction"
    )

    # Roles and reserved identities
    ADMIN_ROLE: str = Field(default="admin", description="Reserved admin role value")
    MM_AI_PROFILE_ID: str = Field(
        default="00000000-0000-4000-a000-000000000001",
        description="System profile that owns AI-authored artworks",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
