"""Loading of run configuration from YAML files."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from pertestcov.config import CoordinatorConfig


def load_config(
    path: Path, overrides: Mapping[str, Any] | None = None
) -> CoordinatorConfig:
    """Load a run configuration, applying overrides on top of the file.

    Args:
        path: YAML file holding a mapping of CoordinatorConfig fields
        overrides: Values that win over the file, e.g. from the command line

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML or not a mapping

    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    return build_config(data, overrides)


def build_config(
    data: Mapping[str, Any], overrides: Mapping[str, Any] | None = None
) -> CoordinatorConfig:
    """Validate configuration values; overrides set to None are ignored."""
    merged = dict(data)
    merged.update(
        {key: value for key, value in (overrides or {}).items() if value is not None}
    )
    return CoordinatorConfig.model_validate(merged)
