"""YAML config loading with env var expansion.

Lookup order: the ``--config`` path, then ``$TYPEBRIDGE_CONFIG``, then
``./typebridge.yaml``, then ``~/.typebridge/config.yaml``. The first file
with any content wins; sections it leaves out keep their defaults.
"""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import TypeBridgeConfig

CONFIG_ENV_VAR = "TYPEBRIDGE_CONFIG"
PROJECT_CONFIG = Path("typebridge.yaml")

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def config_candidates(cli_path: str | None = None) -> list[tuple[Path, bool]]:
    """Config files to try, in order, each flagged as explicitly requested or not."""
    candidates: list[tuple[Path, bool]] = []
    if cli_path:
        candidates.append((Path(cli_path), True))
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        candidates.append((Path(env_path), True))
    candidates.append((PROJECT_CONFIG, False))
    candidates.append((Path.home() / ".typebridge" / "config.yaml", False))
    return candidates


def load_config(cli_path: str | None = None) -> TypeBridgeConfig:
    """Load the first non-empty config file from config_candidates, else defaults."""
    for path, explicit in config_candidates(cli_path):
        if not path.is_file():
            if explicit:
                raise ValueError(f"Config file not found: {path}")
            continue
        raw = _read_yaml(path)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid config in {path}: top level must be a mapping")
        try:
            return TypeBridgeConfig(**_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e

    return TypeBridgeConfig()


def _read_yaml(path: Path) -> object:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings; unset variables become ""."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `typebridge config init`
DEFAULT_CONFIG_TEMPLATE = """\
# typebridge.yaml

# Conversion pipeline
conversion:
  shortcut: true               # prefer direct format-to-format shortcuts
  simplify: true
  merge_objects: false         # merge intersections of objects when simplifying
  strip_annotations: false     # drop titles, descriptions, examples, ...

# Batch conversion
batch:
  concurrency: 16              # files converted at the same time (1 = deterministic order)
  hidden: true                 # include dot-files and git-ignored files when globbing
  # output_directory: "generated"

# TypeScript output
typescript:
  declaration: false           # emit `export declare` declarations
  disable_lint_header: false
  descriptive_header: true
  use_unknown: false           # `unknown` instead of `any`

# GraphQL
graphql:
  unsupported: "ignore"        # ignore | warn | error
  # null_type_name: "Null"

# Open API
open_api:
  format: "yaml"               # json | yaml | yml
  # title: "My API"
  version: "1"

# SureType validators
suretype:
  ref_method: "provided"       # no-refs | provided | ref-all
  export_type: true
  export_validator: true
  export_ensurer: true
  export_type_guard: true
  use_unknown: false
  inline_types: false

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
