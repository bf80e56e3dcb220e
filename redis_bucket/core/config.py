from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from redis_bucket.limiter.backoff import SCALING


class Settings(BaseSettings):
    """Limiter settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Limits are JSON lists, e.g.
    ``BUCKET_RATES='[{"flow": 0.5, "burst": 9}]'``.
    """

    # Redis settings
    redis_url: str = "redis://localhost:6379/0"

    # Key prefix applied to every bucket key
    bucket_prefix: str = ""

    # Limit definitions (flow/burst pairs and window/min/max capacities)
    bucket_rates: list[dict[str, float]] = []
    bucket_capacities: list[dict[str, float]] = []

    # Backoff applied to denied requests
    backoff_scaling: str = "linear"  # a key of SCALING
    backoff_factor: float = 2.0

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("backoff_scaling")
    @classmethod
    def validate_backoff_scaling(cls, v: str) -> str:
        """Validate the scaling name is one of the predefined variants."""
        name = v.strip().lower()
        if name not in SCALING:
            raise ValueError(f"Unknown backoff scaling: {v}")
        return name

    @field_validator("backoff_factor")
    @classmethod
    def validate_backoff_factor(cls, v: float) -> float:
        """Validate backoff factor is positive."""
        if v <= 0:
            raise ValueError("backoff_factor must be positive")
        return v

    @field_validator("bucket_rates", "bucket_capacities", mode="before")
    @classmethod
    def wrap_single_limit(cls, v: Any) -> Any:
        # A single mapping is accepted as a one-element list
        if isinstance(v, dict):
            return [v]
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
