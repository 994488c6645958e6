"""Configuration management for the crash map query service."""
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic_settings import BaseSettings


class DatabaseSettings(BaseSettings):
    """Analytical store (DuckDB) settings."""

    path: str = "data/crashes.duckdb"
    read_only: bool = True
    extension_directory: str = str(Path(tempfile.gettempdir()) / "duckdb_extensions")
    threads: Optional[int] = None

    model_config = {"env_prefix": "DUCKDB_"}

    @property
    def url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"duckdb:///{self.path}"


class QuerySettings(BaseSettings):
    """Limits applied to spatial queries."""

    max_points: int = 5000
    max_severity_values: int = 20
    table: str = "crashes"

    model_config = {"env_prefix": "QUERY_"}


class DataSettings(BaseSettings):
    """Dataset metadata settings."""

    meta_path: str = "data/meta.json"
    version_override: Optional[str] = None

    model_config = {"env_prefix": "DATA_"}


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "json"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5

    model_config = {"env_prefix": "LOG_"}  # Maps level field to LOG_LEVEL env var


class Settings(BaseSettings):
    """Main application settings."""

    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Sub-settings
    database: DatabaseSettings = DatabaseSettings()
    query: QuerySettings = QuerySettings()
    data: DataSettings = DataSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = {"env_file": ".env", "extra": "ignore"}


def _resolve_template_strings(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve ${ENV_VAR:default} template strings in configuration.

    Args:
        config_dict: Configuration dictionary with potential template strings

    Returns:
        Configuration dictionary with resolved template strings
    """

    def resolve_value(value):
        if isinstance(value, str):
            # Pattern matches ${ENV_VAR:default_value} or ${ENV_VAR}
            pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

            def replace_match(match):
                env_var = match.group(1)
                default_value = match.group(2) if match.group(2) is not None else ""
                return os.getenv(env_var, default_value)

            return re.sub(pattern, replace_match, value)
        elif isinstance(value, dict):
            return {k: resolve_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [resolve_value(item) for item in value]
        else:
            return value

    return resolve_value(config_dict)


def load_config(config_path: Optional[Path] = None) -> Settings:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to YAML config file. Defaults to config/config.yaml

    Returns:
        Settings object with loaded configuration
    """
    if config_path is None:
        config_path = Path(os.getenv("CRASHMAP_CONFIG", "config/config.yaml"))

    settings = Settings()

    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f)

        if yaml_config:
            yaml_config = _resolve_template_strings(yaml_config)
            _update_settings_from_dict(settings, yaml_config)

    return settings


def _update_settings_from_dict(settings: Settings, config_dict: Dict[str, Any]) -> None:
    """Update settings object with values from dictionary.

    Args:
        settings: Settings object to update
        config_dict: Dictionary with configuration values
    """
    for key, value in config_dict.items():
        if hasattr(settings, key):
            attr = getattr(settings, key)
            if isinstance(attr, BaseSettings):
                # Recursively update nested settings
                if isinstance(value, dict):
                    for nested_key, nested_value in value.items():
                        if hasattr(attr, nested_key):
                            setattr(attr, nested_key, nested_value)
            else:
                setattr(settings, key, value)


def validate_configuration(settings: Settings) -> None:
    """Validate configuration and warn about unsafe settings.

    Args:
        settings: Settings object to validate

    Raises:
        ValueError: If critical issues are detected in production
    """
    import warnings

    if not Path(settings.database.path).exists():
        if settings.environment == "production":
            raise ValueError(
                f"Crash database not found at {settings.database.path}. "
                "Build it with the refresh pipeline or set DUCKDB_PATH."
            )
        warnings.warn(
            f"Crash database not found at {settings.database.path}. "
            "Queries will fail until the dataset is built.",
            UserWarning,
        )

    # The serving path never writes, so a writable handle in production is a misconfiguration
    if not settings.database.read_only and settings.environment == "production":
        raise ValueError(
            "The crash database must be opened read-only in production. "
            "Unset DUCKDB_READ_ONLY or set it to true."
        )

    cors_origins = os.getenv("CORS_ORIGINS", "")
    if "*" in cors_origins:
        if settings.environment == "production":
            raise ValueError(
                "SECURITY ERROR: Wildcard CORS origin (*) detected in production. "
                "Set specific allowed origins in CORS_ORIGINS environment variable."
            )
        else:
            warnings.warn(
                "Wildcard CORS origin detected. This is a security risk. "
                "Set specific origins in CORS_ORIGINS environment variable.",
                UserWarning,
            )

    if settings.query.max_points < 1:
        raise ValueError("QUERY_MAX_POINTS must be at least 1")


# Global settings instance
settings = load_config()

# Validate configuration on load
validate_configuration(settings)
