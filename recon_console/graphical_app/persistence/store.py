"""Persistence of configuration records and console session snapshots."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from recon_console import __version__
from recon_console.config.loader import recon_from_mapping
from recon_console.config.schema import ReconConfig
from recon_console.graphical_app.app.errors import ConfigLoadFailed, ConfigSaveFailed
from recon_console.graphical_app.app.interfaces import ConfigStoreInterface
from recon_console.graphical_app.app.values import Snapshot


class ConfigStore(ConfigStoreInterface):
    """Reads and writes ``ReconConfig`` records as YAML, or JSON for ``.json`` paths."""

    def save_json(self, path: Path, data: Mapping[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(dict(data), indent=2), encoding="utf-8")

    def load_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        return json.loads(path.read_text(encoding="utf-8"))

    def _read_mapping(self, path: Path) -> Dict[str, Any]:
        text = path.read_text(encoding="utf-8")
        loaded = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
        if not isinstance(loaded, dict):
            raise ValueError("configuration file must contain a mapping")
        # Whole console configs nest the record under "recon".
        if isinstance(loaded.get("recon"), dict):
            loaded = loaded["recon"]
        return loaded

    def load(self, path: Path) -> ReconConfig:
        path = Path(path)
        try:
            config = recon_from_mapping(self._read_mapping(path))
            config.validate()
        except (OSError, ValueError, TypeError, yaml.YAMLError) as exc:
            raise ConfigLoadFailed(f"Could not load configuration from {path}: {exc}") from exc
        return config

    def save(self, path: Path, config: ReconConfig) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.suffix.lower() == ".json":
                self.save_json(path, config.to_dict())
            else:
                with path.open("w", encoding="utf-8") as f:
                    yaml.safe_dump(config.to_dict(), f, sort_keys=False)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigSaveFailed(f"Could not save configuration to {path}: {exc}") from exc

    def snapshot_session(self, snapshot: Snapshot, path: Path, software_version: str = __version__) -> None:
        payload = {
            "software_version": software_version,
            "saved_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "values": snapshot.as_dict(),
        }
        try:
            self.save_json(Path(path), payload)
        except OSError as exc:
            raise ConfigSaveFailed(f"Could not save session to {path}: {exc}") from exc
