"""Configuration loading: TOML file, environment variables and explicit overrides."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from relaytrace.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("relaytrace.toml", ".relaytrace.toml")


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TracingSettings(_Section):
    enabled: bool = True
    service_name: str = "relaytrace"
    sample_rate: float = Field(1.0, ge=0.0, le=1.0)
    debug: bool = False
    attr_truncation_limit: int = Field(1000, gt=0)
    capture_message_body: bool = True


class ExporterSettings(_Section):
    enable_console: bool = False
    enable_logging: bool = False
    enable_otlp: bool = False
    otlp_endpoint: Optional[str] = None
    otlp_headers: Dict[str, str] = Field(default_factory=dict)
    api_key: Optional[str] = None


class MessagingSettings(_Section):
    bootstrap_servers: str = "localhost:9092"
    topic: str = "my-topic"
    group_id: str = "consumer-group"
    auto_offset_reset: str = "earliest"


class BackendSettings(_Section):
    base_url: str = "http://localhost:5046"
    path: str = "backend"
    timeout: float = Field(10.0, gt=0)


class RelaytraceConfig(_Section):
    tracing: TracingSettings = Field(default_factory=TracingSettings)
    exporters: ExporterSettings = Field(default_factory=ExporterSettings)
    messaging: MessagingSettings = Field(default_factory=MessagingSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)


# Environment variable -> (section, key)
ENV_MAPPING: Dict[str, Tuple[str, str]] = {
    "RELAYTRACE_ENABLED": ("tracing", "enabled"),
    "RELAYTRACE_SERVICE_NAME": ("tracing", "service_name"),
    "RELAYTRACE_SAMPLE_RATE": ("tracing", "sample_rate"),
    "RELAYTRACE_DEBUG": ("tracing", "debug"),
    "RELAYTRACE_ENABLE_CONSOLE": ("exporters", "enable_console"),
    "RELAYTRACE_ENABLE_LOGGING": ("exporters", "enable_logging"),
    "RELAYTRACE_ENABLE_OTLP": ("exporters", "enable_otlp"),
    "RELAYTRACE_OTLP_ENDPOINT": ("exporters", "otlp_endpoint"),
    "RELAYTRACE_API_KEY": ("exporters", "api_key"),
    "RELAYTRACE_BOOTSTRAP_SERVERS": ("messaging", "bootstrap_servers"),
    "RELAYTRACE_TOPIC": ("messaging", "topic"),
    "RELAYTRACE_GROUP_ID": ("messaging", "group_id"),
    "RELAYTRACE_BACKEND_URL": ("backend", "base_url"),
}

# Flat keyword overrides accepted by init()/load_config()
OVERRIDE_MAPPING: Dict[str, Tuple[str, str]] = {
    section_key[1]: section_key for section_key in ENV_MAPPING.values()
}
OVERRIDE_MAPPING.update({
    "attr_truncation_limit": ("tracing", "attr_truncation_limit"),
    "capture_message_body": ("tracing", "capture_message_body"),
    "otlp_headers": ("exporters", "otlp_headers"),
    "auto_offset_reset": ("messaging", "auto_offset_reset"),
    "backend_url": ("backend", "base_url"),
    "backend_path": ("backend", "path"),
    "backend_timeout": ("backend", "timeout"),
})


def find_config_file(start_dir: Optional[str] = None) -> Optional[str]:
    """Look for a config file in ``start_dir`` (default: cwd), then the home directory."""
    for directory in (Path(start_dir or os.getcwd()), Path.home()):
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return str(candidate)
    return None


def load_toml_config(path: str) -> Dict[str, Any]:
    """
    Load a TOML config file.

    Returns an empty dict if the file does not exist.

    Raises:
        ConfigError: if the file is not valid TOML
    """
    config_path = Path(path)
    if not config_path.is_file():
        return {}
    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError("invalid TOML config file", {"path": path, "error": exc}) from exc


def load_env_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect ``RELAYTRACE_*`` environment variables into a nested dict."""
    environ = os.environ if environ is None else environ
    result: Dict[str, Any] = {}
    for env_name, (section, key) in ENV_MAPPING.items():
        value = environ.get(env_name)
        if value is not None and value != "":
            result.setdefault(section, {})[key] = value
    return result


def _merge(base: Dict[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def _nest_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    nested: Dict[str, Any] = {}
    for name, value in overrides.items():
        if value is None:
            continue
        if name not in OVERRIDE_MAPPING:
            raise ConfigError("unknown configuration option", {"option": name})
        section, key = OVERRIDE_MAPPING[name]
        nested.setdefault(section, {})[key] = value
    return nested


def validate_config(data: Mapping[str, Any]) -> RelaytraceConfig:
    """
    Validate a nested config dict.

    Raises:
        ConfigError: if validation fails
    """
    try:
        return RelaytraceConfig.model_validate(dict(data))
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError("invalid configuration", {"errors": errors}) from exc


def load_config(
    config_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> RelaytraceConfig:
    """
    Build the effective configuration.

    Priority (lowest to highest): config file, environment variables, keyword overrides.
    """
    path = config_file or find_config_file()
    data: Dict[str, Any] = {}
    if path:
        logger.debug("loading configuration from %s", path)
        data = load_toml_config(path)
    data = _merge(data, load_env_config(environ))
    data = _merge(data, _nest_overrides(overrides))
    return validate_config(data)
