"""
Central configuration for the host metrics agent.
Supports defaults, an optional YAML config file, and environment overrides.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from errors import ConfigError
from utils import env_bool, env_float, env_int, env_str

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULTS: dict[str, Any] = {
    "agent": {
        "interval_sec": 10.0,
        "timeout_sec": 5.0,
        "collection_jitter_sec": 0.0,
        "shutdown_timeout_sec": 5.0,
        "omit_hostname": False,
        "tags": {},
        "log_level": "INFO",
        "log_file": None,
    },
    "outputs": {
        "buffer": {
            "max_points": 10000,
        },
        "history": {
            "enabled": False,
            "path": "~/.host_metrics_agent/history.json",
            "max_points": 10000,
            "save_interval_sec": 60,
        },
        "api": {
            "host": "127.0.0.1",
            "port": 8765,
        },
    },
    "inputs": [],
}

# Per-input keys consumed by the agent; everything else goes to the plugin
RESERVED_INPUT_KEYS = ("plugin", "alias", "interval_sec", "timeout_sec", "tags", "required")

# -----------------------------------------------------------------------------
# Config file loading (YAML)
# -----------------------------------------------------------------------------

_config_overrides: dict[str, Any] = {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def default_paths() -> list[Path]:
    return [
        Path(os.getcwd()) / "agent.yaml",
        Path(os.getcwd()) / "agent.yml",
        Path.home() / ".host_metrics_agent" / "agent.yaml",
    ]


def load_config_file(path: str | Path | None = None) -> Path | None:
    """Load a YAML config. Returns the path loaded, or None if no file was found.

    An explicit path that does not exist, unreadable files and malformed YAML
    raise ConfigError.
    """
    if path is None:
        for p in default_paths():
            if p.exists():
                path = p
                break
        else:
            _apply_env()
            return None
    elif not Path(path).expanduser().exists():
        raise ConfigError(f"config file not found: {path}")
    path = Path(path).expanduser()
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    load_config_dict(data)
    return path


def load_config_dict(data: dict[str, Any]) -> None:
    global _config_overrides
    _config_overrides = _deep_merge(_config_overrides, data)
    _apply_env()


def reset() -> None:
    """Drop everything loaded so far (defaults remain)."""
    _config_overrides.clear()


def get(key_path: str, default: Any = None) -> Any:
    """Get config value by dot path, e.g. 'agent.interval_sec'."""
    merged: Any = _deep_merge(DEFAULTS, _config_overrides)
    for k in key_path.split("."):
        if isinstance(merged, dict) and k in merged:
            merged = merged[k]
        else:
            return default
    return merged


# -----------------------------------------------------------------------------
# Environment overrides (take precedence over file)
# -----------------------------------------------------------------------------

def _env_overrides() -> dict[str, Any]:
    return {
        "agent.interval_sec": env_float("HMA_INTERVAL", 0),
        "agent.timeout_sec": env_float("HMA_TIMEOUT", 0),
        "agent.log_level": env_str("HMA_LOG_LEVEL", ""),
        "outputs.api.port": env_int("HMA_API_PORT", 0),
        "outputs.history.enabled": env_bool("HMA_HISTORY", False),
    }


def _apply_env() -> None:
    for path, value in _env_overrides().items():
        if value in (0, False, ""):
            continue
        keys = path.split(".")
        d = _config_overrides
        for k in keys[:-1]:
            if not isinstance(d.get(k), dict):
                d[k] = {}
            d = d[k]
        d[keys[-1]] = value


_apply_env()

# -----------------------------------------------------------------------------
# Inputs
# -----------------------------------------------------------------------------


@dataclass
class PluginConfig:
    """One configured input: which plugin, how often, and its options blob."""
    plugin: str
    interval_sec: float
    timeout_sec: float | None = None
    alias: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    required: bool = False

    @property
    def instance_id(self) -> str:
        return self.alias or self.plugin


def _positive(value: Any, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{what} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigError(f"{what} must be positive, got {value!r}")
    return number


def parse_tags(raw: Any, what: str) -> dict[str, str]:
    """Tag mapping from config; keys and values must be present and non-empty."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{what} must be a mapping")
    tags: dict[str, str] = {}
    for k, v in raw.items():
        if k is None or v is None or str(k) == "" or str(v) == "":
            raise ConfigError(f"{what}: tag {k!r} needs a non-empty key and value, got {v!r}")
        tags[str(k)] = str(v)
    return tags


def parse_inputs(
    entries: Any,
    default_interval: float = 10.0,
    default_timeout: float | None = None,
) -> list[PluginConfig]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigError("inputs must be a list")
    out: list[PluginConfig] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("plugin"):
            raise ConfigError(f"inputs[{i}]: each input needs a 'plugin' key")
        name = str(entry["plugin"])
        interval = _positive(entry.get("interval_sec", default_interval), f"{name}: interval_sec")
        timeout = entry.get("timeout_sec", default_timeout)
        timeout = _positive(timeout, f"{name}: timeout_sec") if timeout else None
        tags = parse_tags(entry.get("tags"), f"{name}: tags")
        out.append(PluginConfig(
            plugin=name,
            interval_sec=interval,
            timeout_sec=timeout,
            alias=str(entry["alias"]) if entry.get("alias") else None,
            options={k: v for k, v in entry.items() if k not in RESERVED_INPUT_KEYS},
            tags=tags,
            required=bool(entry.get("required", False)),
        ))
    return out


def plugin_configs() -> list[PluginConfig]:
    return parse_inputs(
        get("inputs", []),
        default_interval=float(get("agent.interval_sec", 10.0)),
        default_timeout=get("agent.timeout_sec"),
    )
