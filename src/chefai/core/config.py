"""Pipeline configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Static configuration handed to the client, orchestrator and job tracker."""

    model_config = SettingsConfigDict(
        env_prefix="CHEFAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend API
    api_base_url: str = "http://localhost:8080"
    api_key: str = ""
    api_key_header: str = "X-API-Key"

    # Timeouts (seconds)
    request_timeout: float = 90.0
    resource_timeout: float = 120.0

    # Input limits
    max_images: int = 10
    max_manual_items: int = 20
    max_manual_item_length: int = 100

    # Generation
    recipe_count: int = 5

    # Progress milestones (0-1)
    progress_start: float = 0.1
    progress_midpoint: float = 0.5
    progress_generating: float = 0.6

    # Background jobs
    job_step_delay: float = 0.5  # Cosmetic delay between optimistic job states (0 = off)

    # Storage
    max_stored_analyses: int = 50
    mongo_uri: str = "mongodb://localhost:27017"
    db_name: str = "chefai"

    @property
    def is_api_configured(self) -> bool:
        """Check if an API key has been provided."""
        return bool(self.api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
