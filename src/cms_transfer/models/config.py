"""Configuration for the transfer engine.

Values can be passed explicitly or read from ``CMS_TRANSFER_*`` environment
variables and ``.env`` files.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .options import ConflictStrategy

MIB = 1024 * 1024


class TransferConfig(BaseSettings):
    """Transfer engine settings.

    Example:
        >>> config = TransferConfig(database_url="sqlite:///site.db", source_name="ocms")
        >>> config.max_upload_bytes
        52428800
    """

    model_config = SettingsConfigDict(
        env_prefix="CMS_TRANSFER_",
        env_file=None,
        extra="ignore",
        validate_default=True,
    )

    database_url: str = Field(
        default="sqlite:///:memory:",
        description="SQLAlchemy URL of the content store",
    )
    echo_sql: bool = Field(default=False, description="Log every SQL statement")
    source_name: str = Field(
        default="ocms",
        min_length=1,
        description="Site name used in export file names",
    )
    max_upload_bytes: int = Field(
        default=50 * MIB,
        gt=0,
        description="Largest accepted snapshot upload",
    )
    staging_ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="How long a validated upload stays staged for apply",
    )
    rename_max_attempts: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Suffixes tried before a rename gives up",
    )
    default_conflict_strategy: ConflictStrategy = Field(
        default=ConflictStrategy.SKIP,
        description="Strategy used when the apply request names none",
    )

    @field_validator("source_name")
    @classmethod
    def strip_source_name(cls, v: str) -> str:
        """Normalize source name for use in file names."""
        return v.strip().replace(" ", "-").lower()
