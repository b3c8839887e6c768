"""Read the pipeline YAML from disk."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ConfigurationError
from .models import PipelineConfig

_ENV_PATTERN = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def load_pipeline_config(path: Path | str) -> PipelineConfig:
    """Load and validate a pipeline definition.

    Parameters
    ----------
    path:
        Location of the YAML file.

    Returns
    -------
    PipelineConfig
        The validated configuration.

    Raises
    ------
    ConfigurationError
        If the file is missing, cannot be parsed, or does not match
        :class:`PipelineConfig`.
    """

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(
            f"Pipeline config not found at: {config_path}", details={"path": str(config_path)}
        )

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Failed to parse pipeline config: {config_path}", details={"path": str(config_path)}
        ) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Pipeline config must be a mapping at the top level", details={"path": str(config_path)}
        )

    try:
        return PipelineConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigurationError(
            f"Invalid pipeline config: {config_path}",
            details={"path": str(config_path), "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def resolve_env(value: str, environ: Mapping[str, str] | None = None) -> str:
    """Expand a ``${NAME}`` placeholder from the environment.

    Values that are not a single placeholder are returned unchanged. A
    placeholder naming an unset variable raises :class:`ConfigurationError`.
    """

    match = _ENV_PATTERN.match(value.strip())
    if match is None:
        return value
    env = os.environ if environ is None else environ
    name = match.group(1)
    resolved = env.get(name)
    if resolved is None:
        raise ConfigurationError(
            f"Environment variable '{name}' is not set", details={"variable": name}
        )
    return resolved


__all__ = ["load_pipeline_config", "resolve_env"]
