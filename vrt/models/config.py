"""Configuration models for comparison runs."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DiffOptions(BaseModel):
    """Per-pixel comparison settings used inside the pixel differ."""
    model_config = ConfigDict(frozen=True)

    pixel_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    include_anti_aliasing: bool = False


class CompareConfig(BaseModel):
    # Required
    path: str
    baseline_alias: str
    api_url: Optional[str] = None
    api_key: Optional[str] = None

    # Comparison
    threshold: float = Field(default=0.1, ge=0.0, le=100.0)  # percent of differing pixels
    pixel_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    include_anti_aliasing: bool = False

    # Upload
    upload_results: bool = True
    screenshots_alias: Optional[str] = None
    diffs_alias: Optional[str] = None

    # Context
    repository: Optional[str] = None

    # Output
    output_dir: str = "./screenshot-diffs"
    report_path: str = "./vrt-report.json"
    fail_on_difference: bool = True
    summary: bool = True
    summary_images: Literal["auto", "true", "false"] = "auto"

    # Pull request comment
    comment: bool = False
    comment_header: str = "## Visual Regression Report"

    # Transfer
    concurrency: int = Field(default=10, ge=1)
    max_retries: int = Field(default=2, ge=0)

    @field_validator("api_key", mode="before")
    @classmethod
    def resolve_env_api_key(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and v.startswith("env:"):
            env_var = v[4:]
            resolved = os.environ.get(env_var)
            if resolved is None:
                raise ValueError(f"Environment variable '{env_var}' not set")
            return resolved
        return v

    @property
    def diff_options(self) -> DiffOptions:
        return DiffOptions(
            pixel_threshold=self.pixel_threshold,
            include_anti_aliasing=self.include_anti_aliasing,
        )

    @property
    def remote_path(self) -> str:
        """Screenshot path as stored remotely: no leading './', no trailing '/'."""
        return _strip_path(self.path)

    @property
    def remote_output_dir(self) -> str:
        return _strip_path(self.output_dir)

    @classmethod
    def load(cls, path: str | Path) -> "CompareConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "CompareConfig":
        """Build config from action-style ``INPUT_<NAME>`` variables.

        Both ``INPUT_BASELINE-ALIAS`` and ``INPUT_BASELINE_ALIAS`` spellings are
        accepted. Empty values count as unset so model defaults apply.
        """
        env = os.environ if env is None else env
        data = {}
        for field in cls.model_fields:
            for key in (f"INPUT_{field.upper().replace('_', '-')}", f"INPUT_{field.upper()}"):
                value = env.get(key, "").strip()
                if value:
                    data[field] = value
                    break
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)


def _strip_path(value: str) -> str:
    if value.startswith("./"):
        value = value[2:]
    return value.rstrip("/")
