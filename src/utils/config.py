"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Uploads
    upload_dir: Path = Field(
        default=Path("uploads"),
        description="Directory where supporting documents are stored",
    )
    max_upload_size_mb: int = Field(
        default=10,
        description="Largest accepted supporting document, in megabytes",
    )

    # Repository behaviour
    seed_demo_data: bool = Field(
        default=False,
        description="Populate the repository with demo claims at startup",
    )
    allow_terminal_overwrite: bool = Field(
        default=False,
        description="Allow approved/rejected/auto-approved claims to change status again",
    )

    # Approval rules
    auto_approve_max_amount: float = Field(default=1000.0, description="Largest amount eligible for auto-approval")
    auto_approve_max_hours: float = Field(default=10.0, description="Most hours eligible for auto-approval")
    high_amount_threshold: float = Field(default=5000.0, description="Amounts above this are flagged")
    overtime_hours_threshold: float = Field(default=40.0, description="Hours above this are flagged")
    min_normal_rate: float = Field(default=30.0, description="Rates below this are flagged")
    max_normal_rate: float = Field(default=200.0, description="Rates above this are flagged")

    # Validation bounds
    lecturer_name_min_length: int = Field(default=2)
    lecturer_name_max_length: int = Field(default=100)
    max_hours: float = Field(default=100.0, description="Most hours a single claim may carry")
    max_rate: float = Field(default=500.0, description="Highest accepted hourly rate")
    max_total_amount: float = Field(default=50000.0, description="Highest accepted pre-supplied total")
    max_notes_length: int = Field(default=500)

    @property
    def max_upload_size_bytes(self) -> int:
        """Upload limit in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()


# Convenience access
settings = get_settings()
