"""Configuration loader for YAML/JSON files, settings and environment variables."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from .schema import SyncConfig
from .settings import AppSettings, get_settings
from ..errors import ConfigError
from ..utils.logging import get_logger


# File sections map onto flat SyncConfig fields.
STORE_FIELDS = {
    "access_key": "access_key",
    "secret_key": "secret_key",
    "region": "region",
    "bucket_name": "bucket_name",
    "service_name": "service_name",
    "domain": "domain",
    "endpoint_url": "endpoint_url",
    "timeout_seconds": "timeout_seconds",
    "backend": "store_backend",
}

REPO_FIELDS = {
    "path": "repo_path",
    "patch_name": "patch_name",
    "patch_extension": "patch_extension",
    "selected_paths": "selected_paths",
}

DEFAULT_CONFIG_FILES = [
    "./patchsync.yaml",
    "./patchsync.yml",
    "./patchsync.json",
    "./config/patchsync.yaml",
    "./config/patchsync.json",
]


class ConfigLoader:
    """Builds SyncConfig values from settings, dictionaries and files."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger(self.__class__.__name__)

    def defaults(self) -> Dict[str, Any]:
        """SyncConfig fields taken from application settings."""
        store = self.settings.store
        repo = self.settings.repo
        return {
            "access_key": store.access_key,
            "secret_key": store.secret_key,
            "region": store.region,
            "bucket_name": store.bucket_name,
            "service_name": store.service_name,
            "domain": store.domain,
            "endpoint_url": store.endpoint_url,
            "timeout_seconds": store.timeout_seconds,
            "store_backend": store.backend,
            "repo_path": repo.path,
            "patch_name": repo.patch_name,
            "patch_extension": repo.patch_extension,
        }

    def load_from_dict(self, data: Dict[str, Any], **overrides) -> SyncConfig:
        """Load configuration from a dictionary.

        Accepts either flat SyncConfig fields or ``store``/``repo`` sections.
        Settings fill anything missing; ``overrides`` win over both.

        Raises:
            ConfigError: If the data does not validate
        """
        merged = self.defaults()
        merged.update(self._flatten(data or {}))
        merged.update({k: v for k, v in overrides.items() if v is not None})

        try:
            config = SyncConfig(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        self.logger.debug(
            "Configuration loaded",
            bucket=config.bucket_name,
            region=config.region,
            repo_path=config.repo_path
        )
        return config

    def load_from_file(self, file_path: Union[str, Path], **overrides) -> SyncConfig:
        """Load configuration from a JSON or YAML file.

        Raises:
            ConfigError: If the file cannot be read, parsed or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML format: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {file_path}")

        return self.load_from_dict(data or {}, **overrides)

    def load_from_settings(self, **overrides) -> SyncConfig:
        return self.load_from_dict({}, **overrides)

    def _flatten(self, data: Dict[str, Any]) -> Dict[str, Any]:
        flat: Dict[str, Any] = {}

        for section, mapping in (("store", STORE_FIELDS), ("repo", REPO_FIELDS)):
            values = data.get(section) or {}
            if not isinstance(values, dict):
                raise ConfigError(f"Section '{section}' must be a mapping")
            for name, value in values.items():
                if name not in mapping:
                    self.logger.warning("Ignoring unknown configuration key", section=section, key=name)
                    continue
                flat[mapping[name]] = value

        for name, value in data.items():
            if name in ("store", "repo"):
                continue
            if name in SyncConfig.model_fields:
                flat[name] = value
            else:
                self.logger.warning("Ignoring unknown configuration key", key=name)

        return flat

    def validate_config(self, config: SyncConfig, require_store: bool = True) -> List[str]:
        """Check a config before running a workflow.

        Args:
            config: Configuration to validate
            require_store: Whether remote store fields are needed

        Returns:
            List of warnings

        Raises:
            ConfigError: If the repository path or required store fields are missing
        """
        if not config.repo_path or not Path(config.repo_path).is_dir():
            raise ConfigError(f"Invalid repository path: {config.repo_path!r}")

        if require_store and config.store_backend != "memory":
            missing = config.missing_store_fields()
            if missing:
                raise ConfigError(f"Missing object store configuration: {', '.join(missing)}")

        warnings = []
        if not (Path(config.repo_path) / ".git").exists():
            warnings.append(f"{config.repo_path} does not look like a git working tree")
        if config.endpoint_url and config.endpoint_url.startswith("http://"):
            warnings.append("Endpoint override uses plain HTTP")

        if warnings:
            self.logger.warning("Configuration validation warnings", warnings=warnings)

        return warnings


def load_config(config_file: Optional[str] = None, **overrides) -> SyncConfig:
    """Load configuration from a file, environment variables and settings.

    Looks for configuration files in this order:
    1. ``config_file`` argument
    2. PATCHSYNC_CONFIG_FILE environment variable
    3. ./patchsync.yaml, ./patchsync.yml, ./patchsync.json
    4. ./config/patchsync.yaml, ./config/patchsync.json

    If no file is found, settings (environment and .env) alone are used.
    """
    loader = ConfigLoader()
    logger = get_logger("load_config")

    explicit = config_file or os.getenv('PATCHSYNC_CONFIG_FILE')
    if explicit:
        return loader.load_from_file(explicit, **overrides)

    for file_path in DEFAULT_CONFIG_FILES:
        if os.path.exists(file_path):
            logger.info("Found configuration file", file=file_path)
            return loader.load_from_file(file_path, **overrides)

    return loader.load_from_settings(**overrides)
