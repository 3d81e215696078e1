import os
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain_models.constants import DEFAULT_RESOURCE_DIR, DEFAULT_RESOURCE_NAME


def _safe_getenv(key: str, default: str) -> str:
    """Safely get environment variable with fallback."""
    val = os.getenv(key)
    if val is None or not val.strip():
        return default
    return val


def _optional_getenv(key: str) -> str | None:
    """Get an environment variable, treating blank values as unset."""
    val = os.getenv(key)
    if val is None or not val.strip():
        return None
    return val


class BridgeConfig(BaseModel):
    """
    Configuration for the context bridge.

    Defaults are defined directly in the model or via default_factory using os.getenv.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    resource_name: str = Field(
        default_factory=lambda: _safe_getenv("CONTEXTKIT_RESOURCE_NAME", DEFAULT_RESOURCE_NAME),
        min_length=1,
        description="Name of the context document, without the .xml extension.",
    )
    resource_dir: Path = Field(
        default_factory=lambda: Path(
            _safe_getenv("CONTEXTKIT_RESOURCE_DIR", DEFAULT_RESOURCE_DIR)
        ),
        description="Directory the context document is looked up in.",
    )
    url_prefix: str | None = Field(
        default_factory=lambda: _optional_getenv("CONTEXTKIT_URL_PREFIX"),
        description="Prefix for deep-link URLs of materialized contexts.",
    )
    archive_path: Path | None = Field(
        default=None,
        description="SQLite file the store snapshot is saved to. None keeps state in memory only.",
    )

    @field_validator("resource_name", mode="after")
    @classmethod
    def validate_resource_name(cls, v: str) -> str:
        """Resource names are plain file stems, never paths."""
        if "/" in v or "\\" in v or v in {".", ".."}:
            msg = f"Resource name '{v}' must not contain path separators."
            raise ValueError(msg)
        return v

    @field_validator("url_prefix", mode="after")
    @classmethod
    def strip_url_prefix(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @classmethod
    def default(cls) -> Self:
        """
        Returns the default configuration using Pydantic defaults.
        """
        return cls()
