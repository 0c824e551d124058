"""Configuration management for ChainTest.

Loads and validates chaintest.yaml configuration files.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

CONFIG_FILENAMES = (
    "chaintest.yaml",
    "chaintest.yml",
    ".chaintest.yaml",
    ".chaintest.yml",
)


class ChainTestConfig(BaseModel):
    """Root configuration for ChainTest."""

    version: str = "0.1"
    """Config file version."""

    timeout_seconds: float | None = Field(default=10.0, ge=0)
    """Default per-assertion timeout. 0 or null disables it."""

    debug: bool = False
    """Start every test in debug mode."""

    strict: bool = False
    """Stop a test at its first failed assertion."""

    show_passed: bool = False
    """Report passing assertions as well as failures."""

    post_mortem: bool = False
    """Open pdb on unexpected errors raised while a test is in debug mode."""

    test_paths: list[str] = Field(default_factory=lambda: ["chains"])
    """Files or directories to search for test group modules."""

    @field_validator("test_paths", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [v]
        return v


def find_config(project_root: Path) -> Path | None:
    """Return the first config file found in ``project_root``."""
    for name in CONFIG_FILENAMES:
        candidate = project_root / name
        if candidate.exists():
            return candidate
    return None


def load_config(config_path: Path | None = None, project_root: Path | None = None) -> ChainTestConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Explicit path to config file. If None, searches for chaintest.yaml.
        project_root: Project root directory. Defaults to cwd.

    Returns:
        Parsed configuration. Returns default config if no file found.
    """
    project_root = project_root or Path.cwd()

    if config_path is None:
        config_path = find_config(project_root)

    if config_path is None or not config_path.exists():
        return ChainTestConfig()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return ChainTestConfig.model_validate(data)


def resolve_paths(config: ChainTestConfig, project_root: Path) -> ChainTestConfig:
    """Resolve relative test paths against ``project_root`` (new instance)."""
    resolved_test_paths = [
        str((project_root / p).resolve()) if not Path(p).is_absolute() else p
        for p in config.test_paths
    ]
    return config.model_copy(update={"test_paths": resolved_test_paths})
