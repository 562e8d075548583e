"""Application configuration settings."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Object store connection and credentials."""

    access_key: str = Field(default="", description="Access key id")
    secret_key: str = Field(default="", description="Secret access key")
    region: str = Field(default="us-east-1", description="Store region, e.g. eu-west-1")
    bucket_name: str = Field(default="", description="Bucket holding shared patches")
    service_name: str = Field(default="s3", description="Signing service name")
    domain: str = Field(default="amazonaws.com", description="Provider domain of the endpoint")
    endpoint_url: Optional[str] = Field(default=None, description="Full endpoint override")
    timeout_seconds: float = Field(default=60.0, description="Total timeout per request")
    backend: str = Field(default="s3", description="Store backend: s3 or memory")

    model_config = SettingsConfigDict(
        env_prefix="PATCHSYNC_STORE_",
        env_file=".env",
        extra="ignore",
    )


class RepoSettings(BaseSettings):
    """Working tree and version-control tool configuration."""

    path: str = Field(default=".", description="Root of the working tree")
    patch_name: str = Field(default="MyPatch", description="Default patch name")
    patch_extension: str = Field(default="patch", description="Extension of patch files")
    git_executable: str = Field(default="git", description="git binary to invoke")
    command_timeout_seconds: float = Field(default=120.0, description="Timeout per git invocation")

    model_config = SettingsConfigDict(
        env_prefix="PATCHSYNC_REPO_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="PATCHSYNC_LOG_",
        env_file=".env",
        extra="ignore",
    )


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="patchsync")
    version: str = Field(default="0.3.0")
    max_workers: int = Field(default=4, description="Threads for blocking git calls")

    # Sub-settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    repo: RepoSettings = Field(default_factory=RepoSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="PATCHSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings


def reload_settings() -> AppSettings:
    """Re-read settings from the environment and replace the global instance."""
    global settings
    settings = AppSettings()
    return settings
