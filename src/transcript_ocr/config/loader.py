"""
Configuration file loading for transcript OCR.

Files may be JSON, YAML or TOML. String values can reference environment
variables as ``${NAME}`` or ``${NAME:default}``; the ``TRANSCRIPT_OCR_``
prefixed variable wins over the bare one. Single settings can also be
overridden with ``TRANSCRIPT_OCR_<SECTION>__<FIELD>`` variables, whose values
are parsed as YAML scalars.
"""

import json
import os
import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .models import Config
from ..exceptions import ConfigurationError

PathLike = Union[str, Path]
ConfigData = Dict[str, Any]

ENV_PREFIX = "TRANSCRIPT_OCR_"
OVERRIDE_SEPARATOR = "__"

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def _read_json(text: str) -> ConfigData:
    return json.loads(text)


def _read_yaml(text: str) -> ConfigData:
    return yaml.safe_load(text) or {}


def _read_toml(text: str) -> ConfigData:
    return tomllib.loads(text)


_READERS: Dict[str, Callable[[str], ConfigData]] = {
    ".json": _read_json,
    ".yaml": _read_yaml,
    ".yml": _read_yaml,
    ".toml": _read_toml,
}

_PARSE_ERRORS = (json.JSONDecodeError, yaml.YAMLError, tomllib.TOMLDecodeError)


def load_config(config_path: PathLike, environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Load and validate a configuration file.

    Args:
        config_path: JSON, YAML or TOML file; other suffixes are sniffed
        environ: Environment used for substitution and overrides
            (``os.environ`` when None)

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    environ = os.environ if environ is None else environ
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e

    reader = _READERS.get(path.suffix.lower())
    try:
        data = reader(text) if reader else _sniff(text, path)
    except _PARSE_ERRORS as e:
        raise ConfigurationError(f"Cannot parse configuration {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} must contain a mapping at the top level")

    data = substitute_env_vars(data, environ)
    data = apply_env_overrides(data, environ)
    return load_config_from_dict(data)


def load_config_from_dict(config_data: Mapping[str, Any]) -> Config:
    """
    Validate a configuration mapping.

    Raises:
        ConfigurationError: Listing every invalid field as ``section -> field: message``
    """
    try:
        return Config.model_validate(dict(config_data))
    except ValidationError as e:
        problems = [
            f"{' -> '.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
        raise ConfigurationError("Configuration validation failed:\n" + "\n".join(problems)) from e


def save_config(config: Config, output_path: PathLike, format_type: Optional[str] = None) -> None:
    """
    Write a configuration as JSON or YAML.

    Args:
        config: Configuration to save
        output_path: Destination file; parent directories are created
        format_type: ``json`` or ``yaml``; taken from the suffix when None

    Raises:
        ConfigurationError: For other formats or when writing fails
    """
    path = Path(output_path)
    format_type = (format_type or path.suffix.lstrip(".")).lower()
    data = config.model_dump(mode="json")

    if format_type == "json":
        text = json.dumps(data, indent=2, ensure_ascii=False)
    elif format_type in ("yaml", "yml"):
        text = yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    else:
        raise ConfigurationError(f"Unsupported configuration format: {format_type or path.name}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot write configuration {path}: {e}") from e


def get_default_config() -> Config:
    """Configuration with every calibration constant at its default."""
    return Config()


def validate_config_file(config_path: PathLike) -> bool:
    """Return True if the file loads; raise ConfigurationError otherwise."""
    load_config(config_path)
    return True


def substitute_env_vars(data: Any, environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> Any:
    """Replace ``${NAME}`` and ``${NAME:default}`` in every string of ``data``.

    Unknown names without a default are left untouched.
    """
    if isinstance(data, dict):
        return {key: substitute_env_vars(value, environ, prefix) for key, value in data.items()}
    if isinstance(data, list):
        return [substitute_env_vars(item, environ, prefix) for item in data]
    if not isinstance(data, str):
        return data

    def lookup(match: "re.Match[str]") -> str:
        name, default = match.group(1), match.group(2)
        for candidate in (prefix + name, name):
            if candidate in environ:
                return environ[candidate]
        return default if default is not None else match.group(0)

    return _ENV_REFERENCE.sub(lookup, data)


def apply_env_overrides(data: ConfigData, environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> ConfigData:
    """Fold ``TRANSCRIPT_OCR_GPA__GRADE_A=85`` style variables into ``data``.

    Section and field names are matched case-insensitively. Variables with a
    single name part, like ``TRANSCRIPT_OCR_TESSERACT``, only serve ``${...}``
    substitution and are ignored here.
    """
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in data.items()}
    for name, raw in environ.items():
        if not name.startswith(prefix):
            continue
        parts = name[len(prefix):].lower().split(OVERRIDE_SEPARATOR)
        if len(parts) != 2 or not all(parts):
            continue
        section, field = parts
        if section not in Config.model_fields:
            raise ConfigurationError(f"Unknown configuration section in {name}")
        target = merged.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigurationError(f"Configuration section {section} is not a mapping")
        target[field] = _parse_scalar(raw)
    return merged


def _parse_scalar(raw: str) -> Any:
    if not raw.strip():
        return raw
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def _sniff(text: str, path: Path) -> ConfigData:
    """Guess the format of a file without a known suffix."""
    stripped = text.lstrip()
    if stripped.startswith("{"):
        return _read_json(stripped)

    for reader in (_read_yaml, _read_toml):
        try:
            data = reader(text)
        except _PARSE_ERRORS:
            continue
        if isinstance(data, dict):
            return data

    raise ConfigurationError(f"Unable to detect the format of {path}")
