# src/voca/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

PROVIDERS = ("gemini", "openai", "echo")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def _optional_number(section: Dict[str, Any], key: str, where: str, *, integer: bool = True) -> None:
    if key not in section:
        return
    val = section[key]
    ok = isinstance(val, int) if integer else isinstance(val, (int, float))
    if isinstance(val, bool) or not ok or val < 0:
        kind = "a non-negative integer" if integer else "a non-negative number"
        raise ConfigError(f"'{where}.{key}' must be {kind}")


def _validate_optional(raw: Dict[str, Any]) -> None:
    retry = raw.get("retry") or {}
    if not isinstance(retry, dict):
        raise ConfigError("'retry' must be a mapping")
    for site in ("text", "image"):
        policy = retry.get(site)
        if policy is None:
            continue
        if not isinstance(policy, dict):
            raise ConfigError(f"'retry.{site}' must be a mapping")
        _optional_number(policy, "max_retries", f"retry.{site}")
        _optional_number(policy, "initial_delay_ms", f"retry.{site}")
        _optional_number(policy, "backoff_multiplier", f"retry.{site}", integer=False)

    cooldown = raw.get("cooldown") or {}
    _optional_number(cooldown, "duration_ms", "cooldown")

    bulk = raw.get("bulk") or {}
    _optional_number(bulk, "batch_size", "bulk")
    _optional_number(bulk, "batch_delay_ms", "bulk")
    if bulk.get("batch_size") == 0:
        raise ConfigError("'bulk.batch_size' must be at least 1")

    level = (raw.get("logging") or {}).get("level")
    if level is not None:
        if str(level).upper() not in LOG_LEVELS:
            raise ConfigError(f"Unknown logging.level '{level}' (expected one of {', '.join(LOG_LEVELS)}).")
        raw["logging"]["level"] = str(level).upper()


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "model.provider", str)
    _require(raw, "models.text", str)
    _require(raw, "models.image", str)
    _require(raw, "models.chat", str)

    # Normalise enumerations
    provider = str(raw["model"]["provider"]).lower()
    if provider not in PROVIDERS:
        raise ConfigError(f"Unknown model.provider '{provider}' (expected one of {', '.join(PROVIDERS)}).")
    raw["model"]["provider"] = provider

    # Optional sections are type-checked here; defaults are resolved in bootstrap
    _validate_optional(raw)
    return raw
