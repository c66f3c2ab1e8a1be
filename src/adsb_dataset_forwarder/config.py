"""Configuration loading, environment-variable interpolation, and validation.

Resolution order, lowest to highest precedence::

    built-in defaults → JSON config file → CLI flags / environment variables

String values in the config file may contain ``${VAR}`` placeholders.
``${VAR}`` (no default) raises if unresolvable; ``${VAR:-default}`` falls
back to *default*.

The resulting :class:`AppConfig` is immutable and is passed explicitly to
each pipeline component.
"""

from __future__ import annotations

import copy
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import orjson

from adsb_dataset_forwarder.errors import ConfigurationError

logger = logging.getLogger(__name__)

_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")

_SCHEMA_PATH = Path(__file__).resolve().parent / "config.schema.json"


@dataclass(frozen=True)
class SourceConfig:
    """dump1090 feed connection settings."""

    host: str = ""
    port: int = 30003
    name: str = "dump1090"
    connect_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class DatasetConfig:
    """DataSet ``addEvents`` endpoint settings."""

    url: str = "https://app.scalyr.com/api/addEvents"
    write_token: str = ""
    timeout_seconds: float = 10.0
    collector: str = "adsb-dataset-forwarder"


@dataclass(frozen=True)
class BatchConfig:
    """Batching behaviour."""

    size: int = 500
    double_buffer: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    redact_patterns: tuple[str, ...] = ("*key*", "*token*", "*secret*", "*password*")


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    source: SourceConfig = field(default_factory=SourceConfig)
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _interpolate_value(value: str) -> str:
    """Replace ``${VAR}`` / ``${VAR:-default}`` in *value*."""

    def _replacer(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2)  # None when no ``:-`` present

        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default

        raise ConfigurationError(
            f"Required variable ${{{var_name}}} is not set in the environment"
        )

    return _VAR_RE.sub(_replacer, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate all string values in a JSON-like structure."""
    if isinstance(obj, str):
        return _interpolate_value(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(item) for item in obj]
    return obj


def _apply_overrides(raw: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Set dotted keys (``"source.port"``) from *overrides*, skipping ``None``."""
    merged = copy.deepcopy(raw)
    for dotted, value in overrides.items():
        if value is None:
            continue
        section, _, key = dotted.partition(".")
        merged.setdefault(section, {})[key] = value
    return merged


def _pick(cls: type, raw: dict[str, Any]) -> dict[str, Any]:
    return {k: raw[k] for k in raw if k in cls.__dataclass_fields__}


def _dict_to_config(raw: dict[str, Any]) -> AppConfig:
    """Convert a validated raw dict into a typed :class:`AppConfig`."""
    logging_raw = _pick(LoggingConfig, raw.get("logging", {}))
    if "redact_patterns" in logging_raw:
        logging_raw["redact_patterns"] = tuple(logging_raw["redact_patterns"])

    return AppConfig(
        source=SourceConfig(**_pick(SourceConfig, raw.get("source", {}))),
        dataset=DatasetConfig(**_pick(DatasetConfig, raw.get("dataset", {}))),
        batch=BatchConfig(**_pick(BatchConfig, raw.get("batch", {}))),
        logging=LoggingConfig(**logging_raw),
    )


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    require_write_token: bool = True,
    schema_path: str | Path | None = None,
) -> AppConfig:
    """Load, interpolate, merge, validate, and return the application config.

    Parameters
    ----------
    path:
        Optional filesystem path to a JSON config file.
    overrides:
        Dotted-key values from CLI flags or environment variables
        (``{"source.host": "10.0.0.5"}``).  ``None`` values are ignored.
    require_write_token:
        Whether a missing ``dataset.write_token`` is an error.  Output to
        stdout does not need one.
    schema_path:
        Path to the JSON Schema file.  Defaults to the bundled
        ``config.schema.json``.

    Returns
    -------
    AppConfig
        Fully resolved and validated configuration.

    Raises
    ------
    ConfigurationError
        If a required ``${VAR}`` cannot be resolved, the file cannot be
        read or does not match the schema, or a required setting is empty.
    jsonschema.ValidationError
        If the merged config fails schema validation.
    """
    sp = Path(schema_path) if schema_path else _SCHEMA_PATH
    schema = orjson.loads(sp.read_bytes())

    raw: dict[str, Any] = {}
    if path is not None:
        try:
            raw = orjson.loads(Path(path).read_bytes())
        except OSError as exc:
            raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
        except orjson.JSONDecodeError as exc:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {exc}") from exc
        raw = _walk_and_interpolate(raw)
        # the file must have the right shape before overrides are merged into it
        try:
            jsonschema.validate(instance=raw, schema=schema)
        except jsonschema.ValidationError as exc:
            raise ConfigurationError(f"Config file {path}: {exc.message}") from exc

    merged = _apply_overrides(raw, overrides or {})

    # --- schema validation ---
    jsonschema.validate(instance=merged, schema=schema)
    logger.debug("Config passed schema validation")

    cfg = _dict_to_config(merged)

    if not cfg.source.host:
        raise ConfigurationError(
            "dump1090_host is not set. Provide --dump1090-host or set the "
            "DUMP1090_HOST environment variable."
        )
    if require_write_token and not cfg.dataset.write_token:
        raise ConfigurationError(
            "dataset_api_write_token is not set. Provide --dataset-api-write-token "
            "or set the DATASET_API_WRITE_TOKEN environment variable."
        )
    return cfg

