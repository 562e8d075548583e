"""Configuration package for patchsync."""

from .settings import (
    StoreSettings,
    RepoSettings,
    LoggingSettings,
    AppSettings,
    get_settings,
    reload_settings
)

from .schema import SyncConfig

from .loader import (
    ConfigLoader,
    load_config
)

__all__ = [
    # Application settings
    "StoreSettings",
    "RepoSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",
    "reload_settings",

    # Per-workflow configuration
    "SyncConfig",
    "ConfigLoader",
    "load_config"
]
