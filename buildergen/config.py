"""
config.py

Responsibility: Load generator configuration into a deterministic, typed model.

The configuration is a YAML mapping; every key is optional:

    tag_namespace: builder-gen
    output_suffix: _builder
    output_base: generated/
    source_root: src/
    header_file: hack/boilerplate.py.txt
    types:
      Order:
        new-call: [apply_defaults]
      models.LineItem:
        embedded-ignore-method: [audit]

Relative paths are resolved against the configuration file's directory. CLI flags
override file values (see `cli.py`).
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from buildergen.directives import DEFAULT_NAMESPACE, DirectiveError, Directives, parse_table_entry

DEFAULT_OUTPUT_SUFFIX = "_builder"

_KNOWN_KEYS = {"tag_namespace", "output_suffix", "output_base", "source_root", "header_file", "types"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings for one generation run."""

    tag_namespace: str = DEFAULT_NAMESPACE
    output_suffix: str = DEFAULT_OUTPUT_SUFFIX
    output_base: Path | None = None
    source_root: Path | None = None
    header_text: str = ""
    types: dict[str, Directives] = field(default_factory=dict)

    def with_overrides(self, **overrides: Any) -> GeneratorConfig:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_header(path: str | Path, *, year: int | None = None) -> str:
    """
    Read boilerplate placed at the top of generated modules.

    The token `YEAR` is replaced with the current (or given) year.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Header file does not exist: {p}")
    text = p.read_text(encoding="utf-8")
    year = year or datetime.date.today().year
    return text.replace("YEAR", str(year)).rstrip("\n")


def _optional_path(data: dict[str, Any], key: str, base: Path) -> Path | None:
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(f"`{key}` must be a non-empty string path.")
    return (base / raw.strip()).resolve()


def _string(data: dict[str, Any], key: str, default: str) -> str:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, str):
        raise ConfigError(f"`{key}` must be a string.")
    return raw.strip()


def parse_config(data: dict[str, Any] | None, *, base_dir: Path | None = None) -> GeneratorConfig:
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping/object at the top level.")

    unknown = sorted(str(k) for k in data if k not in _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")

    base = base_dir or Path.cwd()

    tag_namespace = _string(data, "tag_namespace", DEFAULT_NAMESPACE)
    if not tag_namespace:
        raise ConfigError("`tag_namespace` must not be empty.")

    header_file = _optional_path(data, "header_file", base)
    header_text = load_header(header_file) if header_file is not None else ""

    types_raw = data.get("types") or {}
    if not isinstance(types_raw, dict):
        raise ConfigError("`types` must be an object/mapping when provided.")
    try:
        # Deterministic ordering at the boundary.
        types = {str(k): parse_table_entry(str(k), v) for k, v in sorted(types_raw.items(), key=lambda kv: str(kv[0]))}
    except DirectiveError as e:
        raise ConfigError(str(e)) from e

    return GeneratorConfig(
        tag_namespace=tag_namespace,
        output_suffix=_string(data, "output_suffix", DEFAULT_OUTPUT_SUFFIX),
        output_base=_optional_path(data, "output_base", base),
        source_root=_optional_path(data, "source_root", base),
        header_text=header_text,
        types=types,
    )


def load_config(config_path: str | Path) -> GeneratorConfig:
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file does not exist: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return parse_config(data, base_dir=path.parent.resolve())
