"""Configuration factory for flexible config creation.

Provides explicit configuration loading with multiple sources
and clear error handling, without relying on import-time side effects.
"""

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models.config import TransferConfig


class ConfigFactory:
    """Factory for creating TransferConfig instances.

    Sources, in decreasing precedence:
    1. Explicit keyword arguments
    2. Environment variables (CMS_TRANSFER_*)
    3. .env file
    4. Defaults

    Example:
        >>> config = ConfigFactory.from_env()
        >>> config = ConfigFactory.from_env_file(".env.production", required=True)
        >>> config = ConfigFactory.create(database_url="sqlite:///site.db")
    """

    @staticmethod
    def from_env(
        search_paths: list[Path | str] | None = None,
        required: bool = False,
    ) -> TransferConfig:
        """Load configuration from the first .env file found.

        Args:
            search_paths: Candidate .env paths, tried in order.
                Defaults to [".env", ".env.local", "~/.config/cms-transfer/.env"]
            required: Raise if no .env file is found

        Returns:
            Configured TransferConfig

        Raises:
            ConfigurationError: If required=True and no file is found,
                or if the configuration is invalid
        """
        if search_paths is None:
            search_paths = [
                ".env",
                ".env.local",
                Path.home() / ".config" / "cms-transfer" / ".env",
            ]

        for candidate in search_paths:
            path = Path(candidate).expanduser()
            if path.is_file():
                return ConfigFactory._build(_env_file=str(path))

        if required:
            raise ConfigurationError(
                f"No .env file found in search paths: {[str(p) for p in search_paths]}"
            )

        return ConfigFactory._build()

    @staticmethod
    def from_env_file(env_file: Path | str, required: bool = True) -> TransferConfig:
        """Load configuration from a specific .env file.

        Args:
            env_file: Path to the .env file
            required: Raise if the file does not exist

        Raises:
            ConfigurationError: If the file is missing (and required) or invalid
        """
        path = Path(env_file).expanduser()
        if not path.is_file():
            if required:
                raise ConfigurationError(f".env file not found: {path}")
            return ConfigFactory._build()

        return ConfigFactory._build(_env_file=str(path))

    @staticmethod
    def from_environment_only() -> TransferConfig:
        """Load configuration from environment variables only.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        return ConfigFactory._build(_env_file=None)

    @staticmethod
    def from_dict(config_dict: dict[str, Any]) -> TransferConfig:
        """Create configuration from a dictionary.

        Args:
            config_dict: Configuration values keyed by field name

        Raises:
            ConfigurationError: If the configuration is invalid

        Example:
            >>> config = ConfigFactory.from_dict({"rename_max_attempts": 10})
        """
        return ConfigFactory._build(**config_dict)

    @staticmethod
    def create(**kwargs: Any) -> TransferConfig:
        """Create configuration from keyword arguments.

        Raises:
            ConfigurationError: If the configuration is invalid

        Example:
            >>> config = ConfigFactory.create(
            ...     database_url="postgresql+psycopg://localhost/site",
            ...     default_conflict_strategy="rename",
            ... )
        """
        return ConfigFactory._build(**kwargs)

    @staticmethod
    def merge(*configs: TransferConfig, base: TransferConfig | None = None) -> TransferConfig:
        """Merge configurations; later configs override earlier ones.

        Only fields explicitly set on a config take part in the override.

        Raises:
            ValueError: If no configs are given
        """
        if not configs and base is None:
            raise ValueError("At least one config must be provided")

        merged: dict[str, Any] = base.model_dump() if base is not None else {}
        for config in configs:
            merged.update(config.model_dump(exclude_unset=True))

        return ConfigFactory._build(**merged)

    @staticmethod
    def _build(**kwargs: Any) -> TransferConfig:
        try:
            return TransferConfig(**kwargs)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(env_file: Path | str | None = None, required: bool = False) -> TransferConfig:
    """Load configuration from a file or the default search paths.

    Example:
        >>> config = load_config(".env.production", required=True)
    """
    if env_file is not None:
        return ConfigFactory.from_env_file(env_file, required=required)
    return ConfigFactory.from_env(required=required)


def create_config(**kwargs: Any) -> TransferConfig:
    """Shorthand for ConfigFactory.create()."""
    return ConfigFactory.create(**kwargs)
