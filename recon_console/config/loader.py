"""YAML configuration loading, merging, and validation helpers."""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from recon_console.config.schema import (
    ChoicesConfig,
    ConsoleConfig,
    DeviceConfig,
    EngineConfig,
    LimitsConfig,
    LoggingConfig,
    ReconConfig,
)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _set_nested(root: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    cursor = root
    for part in parts[:-1]:
        if part not in cursor or not isinstance(cursor[part], dict):
            cursor[part] = {}
        cursor = cursor[part]
    cursor[parts[-1]] = value


def _from_dataclass(cls, data: dict[str, Any]):
    valid_names = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in valid_names}
    return cls(**kwargs)


def _defaults() -> dict[str, Any]:
    return ConsoleConfig().to_dict()


def load_mapping(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        raise ValueError("Top-level config must be a mapping")
    return loaded


def recon_from_mapping(data: dict[str, Any]) -> ReconConfig:
    recon = _from_dataclass(ReconConfig, data)
    recon.angle_table = [[float(cell) for cell in row] for row in recon.angle_table or []]
    return recon


def load_console_config(config_path: str | Path | None = None, overrides: list[str] | None = None) -> ConsoleConfig:
    raw = _defaults()

    if config_path:
        raw = _deep_merge(raw, load_mapping(Path(config_path)))

    for entry in overrides or []:
        if "=" not in entry:
            raise ValueError(f"Invalid override '{entry}'. Expected key=value")
        key, value_text = entry.split("=", maxsplit=1)
        _set_nested(raw, key.strip(), yaml.safe_load(value_text))

    config = ConsoleConfig(
        limits=_from_dataclass(LimitsConfig, raw.get("limits", {})),
        device=_from_dataclass(DeviceConfig, raw.get("device", {})),
        choices=_from_dataclass(ChoicesConfig, raw.get("choices", {})),
        recon=recon_from_mapping(raw.get("recon", {})),
        engine=_from_dataclass(EngineConfig, raw.get("engine", {})),
        logging=_from_dataclass(LoggingConfig, raw.get("logging", {})),
    )
    config.validate()
    return config


def dump_yaml(data: dict[str, Any], path: str | Path) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
