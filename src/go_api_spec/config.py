"""Directory conventions and document defaults.

Settings live under a top-level ``generate:`` key in ``.go-api-spec.yaml``
or ``go-api-spec.yaml`` at the project root. Missing keys keep their
defaults; a missing file means all defaults.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from go_api_spec.errors import ConfigError

CONFIG_FILENAMES = (".go-api-spec.yaml", "go-api-spec.yaml")


class GeneratorConfig(BaseModel):
    """Paths are relative to the project root."""

    microservice_dir: str = "internal/ms"
    domain_dir: str = "internal/domain"
    models_dir: str = "pkg/models"

    microservice_prefix: str = "ms_"
    business_layer_suffix: str = "_business_layer"
    controller_file_markers: list[str] = ["controller", "http", "setup"]

    openapi_title: str = "API"
    openapi_servers: list[str] = []
    oauth_authorize: str = ""
    oauth_token: str = ""

    # symbolic constant -> literal, merged over the built-in table
    permission_constants: dict[str, str] = {}


def find_config_file(project_root: Path) -> Path | None:
    for name in CONFIG_FILENAMES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def load_config(project_root: Path, config_path: Path | None = None) -> GeneratorConfig:
    """Load the generator configuration, falling back to defaults."""
    path = config_path or find_config_file(project_root)
    if path is None:
        return GeneratorConfig()

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    section = data.get("generate") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'generate' in {path} must be a mapping")

    try:
        return GeneratorConfig(**section)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e
