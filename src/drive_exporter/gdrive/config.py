"""Configuration dataclasses for the Drive exporter.

This module defines the configuration structure for the exporter, including
authorization, traversal, retry and rate limiting settings. Values can be
overridden from a settings YAML file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore[import-untyped]

from drive_exporter.errors import ConfigurationError


@dataclass
class AuthConfig:
    """Interactive authorization configuration."""

    callback_host: str = "localhost"
    open_browser: bool = True
    callback_timeout_seconds: Optional[float] = None


@dataclass
class ProcessingConfig:
    """Tree traversal configuration."""

    max_folder_depth: int = 100
    http_timeout_seconds: float = 60.0
    page_size: int = 100


@dataclass
class RetryConfig:
    """Backoff settings for retryable Drive API errors."""

    max_retries: int = 5
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 32.0
    multiplier: float = 2.0


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    requests_per_100_seconds: int = 900  # Under Google's 1000/100s limit


@dataclass
class ExporterConfig:
    """Main configuration for the Drive exporter.

    Example:
        config = ExporterConfig()
        config.processing.max_folder_depth = 20
        config.retry.max_retries = 0
    """

    auth: AuthConfig = field(default_factory=AuthConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExporterConfig":
        """Create an ExporterConfig from a dictionary (e.g., from YAML).

        Unknown keys are ignored; missing keys keep their defaults.

        Args:
            data: Dictionary with configuration values.

        Returns:
            ExporterConfig instance with values from the dictionary.
        """
        config = cls()

        if "auth" in data:
            auth_data = data["auth"] or {}
            config.auth.callback_host = auth_data.get("callback_host", config.auth.callback_host)
            config.auth.open_browser = bool(auth_data.get("open_browser", config.auth.open_browser))
            config.auth.callback_timeout_seconds = auth_data.get(
                "callback_timeout_seconds", config.auth.callback_timeout_seconds
            )

        if "processing" in data:
            proc_data = data["processing"] or {}
            config.processing.max_folder_depth = int(
                proc_data.get("max_folder_depth", config.processing.max_folder_depth)
            )
            config.processing.http_timeout_seconds = float(
                proc_data.get("http_timeout_seconds", config.processing.http_timeout_seconds)
            )
            config.processing.page_size = int(proc_data.get("page_size", config.processing.page_size))

        if "retry" in data:
            retry_data = data["retry"] or {}
            config.retry.max_retries = int(retry_data.get("max_retries", config.retry.max_retries))
            config.retry.initial_delay_seconds = float(
                retry_data.get("initial_delay_seconds", config.retry.initial_delay_seconds)
            )
            config.retry.max_delay_seconds = float(
                retry_data.get("max_delay_seconds", config.retry.max_delay_seconds)
            )
            config.retry.multiplier = float(retry_data.get("multiplier", config.retry.multiplier))

        if "rate_limit" in data:
            rate_data = data["rate_limit"] or {}
            config.rate_limit.requests_per_100_seconds = int(
                rate_data.get(
                    "requests_per_100_seconds", config.rate_limit.requests_per_100_seconds
                )
            )

        return config


def load_config(config_path: Optional[Path] = None) -> ExporterConfig:
    """Load configuration from a settings YAML file.

    Args:
        config_path: Path to settings.yaml. None returns the defaults.

    Returns:
        Populated ExporterConfig.

    Raises:
        ConfigurationError: If the file cannot be read or is not a mapping.
    """
    if config_path is None:
        return ExporterConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Unable to read settings file {config_path}: {e}", path=config_path
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file {config_path} must contain a mapping at the top level",
            path=config_path,
        )

    try:
        return ExporterConfig.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(f"Invalid settings in {config_path}: {e}", path=config_path) from e
