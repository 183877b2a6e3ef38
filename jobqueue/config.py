"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from jobqueue.constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_PAYLOAD_BYTES,
    DEFAULT_SCHEDULE_GROUP,
    DEFAULT_SCHEDULE_PREFIX,
    MAX_NATIVE_DELAY_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AWS
    aws_region: str = "us-east-1"
    aws_endpoint_url: str | None = None  # LocalStack and friends

    # Queues (name -> URL, JSON in the environment)
    sqs_queues: dict[str, str] = {}
    sqs_default_queue: str | None = None

    # Scheduler
    scheduler_role_arn: str | None = None
    scheduler_group_name: str = DEFAULT_SCHEDULE_GROUP
    scheduler_name_prefix: str = DEFAULT_SCHEDULE_PREFIX

    # Jobs
    default_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    max_native_delay_seconds: int = MAX_NATIVE_DELAY_SECONDS
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES

    # Observability
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "jobqueue"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
