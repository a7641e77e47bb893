"""Centralized application state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOGGING_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


@dataclass
class LogEntry:
    timestamp: str
    level: LogLevel
    message: str
    source: str = "controller"

    def format(self) -> str:
        return f"{self.timestamp} {self.level.value.upper():7s} [{self.source}] {self.message}"


@dataclass
class RunMetadata:
    run_id: str
    started_at: str
    parameters: Dict[str, Any]


@dataclass
class AppState:
    status_text: str = "Ready"
    active_run: Optional[RunMetadata] = None
    last_run_status: str = ""
    notifications: List[str] = field(default_factory=list)
    logs: List[LogEntry] = field(default_factory=list)
    config_path: Optional[str] = None
    active_page: str = ""

    def notify(self, message: str) -> None:
        self.notifications.append(message)

    def set_status(self, message: str) -> None:
        self.status_text = message

    def add_log(self, level: LogLevel, message: str, source: str = "controller") -> None:
        self.logs.append(
            LogEntry(
                timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
                level=level,
                message=message,
                source=source,
            )
        )
        logging.getLogger(f"recon_console.{source}").log(_LOGGING_LEVELS[level], message)

    def add_command_log(self, command: str, phase: str, message: str, level: LogLevel = LogLevel.INFO) -> None:
        self.add_log(level, f"[{command}] {phase}: {message}", source="controller")
