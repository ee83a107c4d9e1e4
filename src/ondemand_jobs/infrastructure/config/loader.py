"""Configuration loading and validation."""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, fields
from urllib.parse import urlparse

from ondemand_jobs.domain.exceptions import ConfigurationError
from ondemand_jobs.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ClientConfig:
    """Configuration for talking to the job processing API."""

    # Endpoint
    base_url: str
    api_key: Optional[str] = None
    api_key_header: str = "X-API-Key"
    timeout: float = 30.0

    # Routes, relative to base_url
    submit_path: str = "/submit-job"
    create_job_path: str = "/create-job"
    status_path: str = "/{job_id}"

    # Polling
    poll_interval: float = 5.0
    max_poll_checks: Optional[int] = None
    poll_timeout: Optional[float] = None

    # Name used for the file part when the payload has none
    default_file_name: str = "upload.bin"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        parsed = urlparse(self.base_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid base_url: {self.base_url!r}")

        if self.timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive, got: {self.timeout}")

        if self.poll_interval < 0:
            raise ConfigurationError(
                f"Poll interval cannot be negative, got: {self.poll_interval}"
            )

        if self.max_poll_checks is not None and self.max_poll_checks <= 0:
            raise ConfigurationError(
                f"max_poll_checks must be positive, got: {self.max_poll_checks}"
            )

        if self.poll_timeout is not None and self.poll_timeout <= 0:
            raise ConfigurationError(
                f"poll_timeout must be positive, got: {self.poll_timeout}"
            )

        if "{job_id}" not in self.status_path:
            raise ConfigurationError(
                f"status_path must contain '{{job_id}}', got: {self.status_path!r}"
            )

    def url_for(self, path: str) -> str:
        """Join a relative path onto base_url."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def status_path_for(self, job_id: Any) -> str:
        """Status route for one job."""
        return self.status_path.format(job_id=job_id)


class ConfigLoader:
    """Loads and validates configuration from YAML files and environment variables."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional path to YAML config file
        """
        self.config_path = Path(config_path) if config_path else Path("ondemand.yaml")
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> ClientConfig:
        """
        Load configuration from file and environment.

        Environment variables take precedence over the config file, and
        explicit overrides take precedence over both.

        Returns:
            ClientConfig instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading config from {self.config_path}")
            with open(self.config_path, 'r', encoding='utf-8') as f:
                try:
                    yaml_config = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(
                        f"Invalid YAML in {self.config_path}: {e}"
                    ) from e
            if not isinstance(yaml_config, dict):
                raise ConfigurationError(
                    f"Config file must contain a mapping: {self.config_path}"
                )
            config_dict.update(yaml_config)
        else:
            self._logger.debug(f"Config file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        if not config_dict.get("base_url"):
            raise ConfigurationError("base_url is required (set ONDEMAND_API_BASE)")

        valid_fields = {f.name for f in fields(ClientConfig)}
        unknown = sorted(k for k in config_dict if k not in valid_fields)
        if unknown:
            self._logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}

        try:
            return ClientConfig(**filtered_config)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        if base_url := os.getenv("ONDEMAND_API_BASE"):
            env_config["base_url"] = base_url

        if api_key := os.getenv("ONDEMAND_API_KEY"):
            env_config["api_key"] = api_key

        if header := os.getenv("ONDEMAND_API_KEY_HEADER"):
            env_config["api_key_header"] = header

        self._read_number("ONDEMAND_TIMEOUT", "timeout", float, env_config)
        self._read_number("ONDEMAND_POLL_INTERVAL", "poll_interval", float, env_config)
        self._read_number("ONDEMAND_MAX_POLL_CHECKS", "max_poll_checks", int, env_config)
        self._read_number("ONDEMAND_POLL_TIMEOUT", "poll_timeout", float, env_config)

        return env_config

    def _read_number(self, env_name: str, key: str, cast, target: Dict[str, Any]) -> None:
        raw = os.getenv(env_name)
        if not raw:
            return
        try:
            target[key] = cast(raw)
        except ValueError:
            self._logger.warning(f"Invalid {env_name} value: {raw}")
