"""Per-workflow configuration value."""

from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..signing.signer import Credentials


class SyncConfig(BaseModel):
    """Immutable configuration handed to every workflow call.

    Nothing in here is retained by the orchestrator between calls.
    """

    model_config = ConfigDict(frozen=True)

    # Object store
    access_key: str = Field(default="", description="Access key id")
    secret_key: str = Field(default="", description="Secret access key")
    region: str = Field(default="us-east-1", description="Store region")
    bucket_name: str = Field(default="", description="Bucket name")
    service_name: str = Field(default="s3", description="Signing service name")
    domain: str = Field(default="amazonaws.com", description="Provider domain")
    endpoint_url: Optional[str] = Field(default=None, description="Endpoint override")
    timeout_seconds: float = Field(default=60.0, description="Request timeout")
    store_backend: str = Field(default="s3", description="Registered store backend")

    # Working tree
    repo_path: str = Field(default=".", description="Root of the working tree")
    patch_name: str = Field(default="MyPatch", description="Name of the patch to create")
    patch_extension: str = Field(default="patch", description="Patch file extension")
    selected_paths: Tuple[str, ...] = Field(default=(), description="Paths to include, empty = all")

    @field_validator('selected_paths', mode='before')
    @classmethod
    def normalize_selection(cls, v):
        """Drop duplicates, keep first-seen order."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple(dict.fromkeys(v))

    @field_validator('region', 'service_name', 'patch_extension')
    @classmethod
    def strip_value(cls, v):
        return v.strip()

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            access_key=self.access_key,
            secret_key=self.secret_key,
            region=self.region,
            service=self.service_name
        )

    @property
    def patch_key(self) -> str:
        """Remote key of the patch named by this config."""
        return f"{self.patch_name}.{self.patch_extension}"

    def missing_store_fields(self) -> List[str]:
        """Names of store fields a remote call cannot do without."""
        required = {
            "access_key": self.access_key,
            "secret_key": self.secret_key,
            "bucket_name": self.bucket_name,
            "region": self.region,
        }
        return [name for name, value in required.items() if not value]

    def with_selection(self, paths) -> "SyncConfig":
        data = self.model_dump()
        data["selected_paths"] = paths
        return SyncConfig(**data)
