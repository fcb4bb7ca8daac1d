"""Configuration loading: TOML file, environment variables and explicit overrides.

Priority, highest first: explicit overrides > environment > config file >
defaults. Loaders return flat dicts; :func:`validate_config` turns one into a
:class:`TracewireConfig`.

Example ``tracewire.toml``::

    [tracing]
    sample_rate = 0.25
    service_name = "checkout"

    [instrumentation]
    tracing_origins = ["localhost", "re:^/api/"]
    trace_xhr = false
    pending_timeout = 300

    [exporters]
    enable_logging = true
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from tracewire.errors import ConfigError
from tracewire.instrumentation.coordinator import RequestInstrumentationOptions
from tracewire.instrumentation.origin_filter import (
    DEFAULT_MAX_CACHE_SIZE,
    DEFAULT_REPORTING_ENDPOINT_PATTERN,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "tracewire.toml"
ENV_PREFIX = "TRACEWIRE_"
REGEX_ORIGIN_PREFIX = "re:"


class TracingSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Left untyped on purpose: an invalid rate is reported by the sampler and
    # disables sampling instead of failing startup.
    sample_rate: Any = None
    service_name: Optional[str] = None


class InstrumentationSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tracing_origins: Optional[List[str]] = None
    trace_fetch: bool = True
    trace_xhr: bool = True
    reporting_endpoint_pattern: str = DEFAULT_REPORTING_ENDPOINT_PATTERN
    max_cache_size: Optional[int] = Field(default=DEFAULT_MAX_CACHE_SIZE, ge=1)
    pending_timeout: Optional[float] = Field(default=None, gt=0)


class ExportersSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enable_console: bool = False
    enable_logging: bool = False


class TracewireConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tracing: TracingSection = Field(default_factory=TracingSection)
    instrumentation: InstrumentationSection = Field(default_factory=InstrumentationSection)
    exporters: ExportersSection = Field(default_factory=ExportersSection)

    def to_instrumentation_options(self, **overrides: Any) -> RequestInstrumentationOptions:
        section = self.instrumentation
        values: Dict[str, Any] = {
            "trace_fetch": section.trace_fetch,
            "trace_xhr": section.trace_xhr,
            "reporting_endpoint_pattern": section.reporting_endpoint_pattern,
            "max_cache_size": section.max_cache_size,
            "pending_timeout": section.pending_timeout,
        }
        if section.tracing_origins is not None:
            values["tracing_origins"] = [_compile_origin(origin) for origin in section.tracing_origins]
        values.update(overrides)
        return RequestInstrumentationOptions(**values)


# flat key -> section
_SECTION_OF: Dict[str, str] = {
    "sample_rate": "tracing",
    "service_name": "tracing",
    "tracing_origins": "instrumentation",
    "trace_fetch": "instrumentation",
    "trace_xhr": "instrumentation",
    "reporting_endpoint_pattern": "instrumentation",
    "max_cache_size": "instrumentation",
    "pending_timeout": "instrumentation",
    "enable_console": "exporters",
    "enable_logging": "exporters",
}


def _compile_origin(origin: str) -> Any:
    if origin.startswith(REGEX_ORIGIN_PREFIX):
        pattern = origin[len(REGEX_ORIGIN_PREFIX):]
        try:
            return re.compile(pattern)
        except re.error as e:
            raise ConfigError("Invalid tracing origin pattern", {"pattern": pattern, "error": e}) from e
    return origin


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_number(value: str) -> Any:
    # Unparseable rates are passed through so the sampler can report them
    try:
        return float(value)
    except ValueError:
        return value


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


_ENV_VARS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "SAMPLE_RATE": ("sample_rate", _parse_number),
    "SERVICE_NAME": ("service_name", str),
    "TRACING_ORIGINS": ("tracing_origins", _parse_list),
    "TRACE_FETCH": ("trace_fetch", _parse_bool),
    "TRACE_XHR": ("trace_xhr", _parse_bool),
    "REPORTING_ENDPOINT_PATTERN": ("reporting_endpoint_pattern", str),
    "MAX_CACHE_SIZE": ("max_cache_size", int),
    "PENDING_TIMEOUT": ("pending_timeout", float),
    "ENABLE_CONSOLE_EXPORTER": ("enable_console", _parse_bool),
    "ENABLE_LOGGING": ("enable_logging", _parse_bool),
}


def flatten_config(nested: Dict[str, Any]) -> Dict[str, Any]:
    """Turn ``{"tracing": {"sample_rate": 1}}`` into ``{"sample_rate": 1}``."""
    flat: Dict[str, Any] = {}
    for section, values in nested.items():
        if not isinstance(values, dict):
            raise ConfigError("Config sections must be tables", {"section": section})
        for key, value in values.items():
            if _SECTION_OF.get(key) != section:
                raise ConfigError("Unknown config key", {"section": section, "key": key})
            flat[key] = value
    return flat


def nest_config(flat: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    nested: Dict[str, Dict[str, Any]] = {}
    for key, value in flat.items():
        section = _SECTION_OF.get(key)
        if section is None:
            raise ConfigError("Unknown config key", {"key": key})
        nested.setdefault(section, {})[key] = value
    return nested


def load_toml_config(path: str) -> Dict[str, Any]:
    """
    Load a TOML config file.

    Returns an empty dict when the file doesn't exist; raises ConfigError when
    it can't be parsed.
    """
    config_path = Path(path)
    if not config_path.is_file():
        return {}
    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError("Invalid TOML config file", {"path": str(config_path), "error": e}) from e


def find_config_file() -> Optional[str]:
    """Look for tracewire.toml in the current directory, then ~/.config/tracewire/."""
    candidates = [
        Path.cwd() / CONFIG_FILE_NAME,
        Path.home() / ".config" / "tracewire" / CONFIG_FILE_NAME,
    ]
    for candidate in candidates:
        if candidate.is_file():
            return str(candidate)
    return None


def load_config_from_env(flat: bool = False) -> Dict[str, Any]:
    """Read TRACEWIRE_* environment variables; missing variables are left out."""
    values: Dict[str, Any] = {}
    for suffix, (key, parse) in _ENV_VARS.items():
        raw = os.environ.get(ENV_PREFIX + suffix)
        if raw is None:
            continue
        try:
            values[key] = parse(raw)
        except ValueError as e:
            raise ConfigError("Invalid environment variable", {"name": ENV_PREFIX + suffix, "value": raw}) from e
    return values if flat else nest_config(values)


def load_config_with_priority(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Merge file, environment and explicit overrides into one flat dict."""
    path = config_file or find_config_file()
    merged: Dict[str, Any] = {}
    if path:
        logger.debug("Loading tracewire config from %s", path)
        merged.update(flatten_config(load_toml_config(path)))
    merged.update(load_config_from_env(flat=True))
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    return merged


def validate_config(flat: Dict[str, Any]) -> TracewireConfig:
    """Build a TracewireConfig from a flat dict, raising ConfigError on bad values."""
    try:
        return TracewireConfig.model_validate(nest_config(flat))
    except PydanticValidationError as e:
        raise ConfigError("Invalid tracewire configuration", {"errors": e.error_count()}) from e


def load_config(config_file: Optional[str] = None, **overrides: Any) -> TracewireConfig:
    return validate_config(load_config_with_priority(config_file=config_file, overrides=overrides))
