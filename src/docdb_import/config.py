"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Importer-wide settings, populated from env vars or .env file."""

    # Store connection
    cosmos_endpoint: str = Field(default="", description="Account endpoint, e.g. 'https://acct.documents.azure.com:443/'")
    cosmos_key: str = Field(default="", description="Account master key")
    user_agent_suffix: str = Field(
        default="docdb-bulk-import/0.1.0",
        description="Appended to the SDK user agent so requests can be traced to the importer.",
    )

    # Target
    database_name: str = "bulkimport"
    collection_name: str = "documents"
    range_indexes: list[str] = Field(
        default_factory=list,
        description="Field paths indexed with Range precision, e.g. '/timestamp/?' (JSON list in env).",
    )
    offer_type: str | None = Field(
        default=None,
        description="Service tier for new collections: 'S1' | 'S2' | 'S3' or an RU/s number.",
    )
    partition_key_path: str = Field(
        default="/partitionKey",
        description="Partition key path of new collections; each procedure call covers one value.",
    )
    partition_key_value: str | None = Field(
        default=None,
        description="Written into documents that have no value at partition_key_path.",
    )

    # Import behaviour
    upsert: bool = True
    max_script_size: int = Field(default=50_000, description="Character budget of one procedure payload")
    max_script_docs: int = Field(default=50, description="Max documents per procedure call")

    # Retry
    retry_max_attempts: int = 10
    retry_initial_backoff: float = 1.0
    retry_backoff_multiplier: float = 2.0
    retry_max_backoff: float = 30.0
    retry_max_total_wait: float = 300.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("max_script_size", "max_script_docs")
    @classmethod
    def _positive_limit(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("chunk limits must be positive")
        return value

    @field_validator("partition_key_path")
    @classmethod
    def _key_path(cls, value: str) -> str:
        if not value.startswith("/") or not value.strip("/"):
            raise ValueError("partition_key_path must look like '/field'")
        return value

    @field_validator("retry_initial_backoff", "retry_max_backoff", "retry_max_total_wait")
    @classmethod
    def _non_negative_wait(cls, value: float) -> float:
        if value < 0:
            raise ValueError("retry waits must not be negative")
        return value

    @field_validator("retry_backoff_multiplier")
    @classmethod
    def _growing_multiplier(cls, value: float) -> float:
        if value < 1.0:
            raise ValueError("retry_backoff_multiplier must be >= 1")
        return value


# Singleton — import `settings` wherever needed.
settings = Settings()
