"""Engine configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="TAKTAK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="taktak", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console", description="Log renderer: console or json"
    )

    # Loop node
    max_loop_iterations: int = Field(
        default=1000, ge=1, description="Default loop iteration ceiling"
    )
    default_batch_size: int = Field(
        default=1, ge=1, description="Default loop batch size"
    )

    # HTTP request node
    http_timeout: float = Field(
        default=30.0, gt=0, description="HTTP request timeout in seconds"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ("production", "prod")


@lru_cache()
def get_settings() -> Settings:
    """Get engine settings (cached)."""
    return Settings()


# Global settings instance
settings = get_settings()
