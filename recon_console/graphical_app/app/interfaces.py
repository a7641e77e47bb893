"""Core interfaces for the graphical application layers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from recon_console.config.schema import ReconConfig
from recon_console.graphical_app.app.values import Snapshot


@dataclass
class OperationError:
    code: str
    details: Dict[str, Any] | None = None


@dataclass
class OperationResult:
    success: bool
    message: str
    payload: Any | None = None
    error: OperationError | None = None


def success_result(message: str, payload: Any | None = None) -> OperationResult:
    return OperationResult(success=True, message=message, payload=payload)


def failure_result(message: str, code: str = "operation_error", details: Dict[str, Any] | None = None) -> OperationResult:
    return OperationResult(success=False, message=message, error=OperationError(code=code, details=details))


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class EngineResult:
    outcome: RunOutcome
    reason: str = ""

    @property
    def status_text(self) -> str:
        if self.outcome is RunOutcome.FAILED:
            return f"failed: {self.reason}" if self.reason else "failed"
        return self.outcome.value


@dataclass(frozen=True)
class Intent:
    """A request addressed to one collaborator, built from a model snapshot."""

    target: str
    action: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.target}.{self.action}"


ProgressListener = Callable[[float], None]


class EngineInterface(ABC):
    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def shutdown(self) -> None: ...

    @abstractmethod
    def run(self, snapshot: Snapshot) -> "Future[EngineResult]": ...

    @abstractmethod
    def cancel(self) -> None: ...

    @abstractmethod
    def progress(self, listener: ProgressListener) -> None: ...

    @abstractmethod
    def test_geometry(self, snapshot: Snapshot) -> Dict[str, Any]: ...

    @abstractmethod
    def auto_geometry(self, snapshot: Snapshot) -> Dict[str, Any]: ...

    @abstractmethod
    def refresh(self, snapshot: Snapshot) -> None: ...

    @abstractmethod
    def pan(self, dx: int, dy: int) -> None: ...


class HardwareInterface(ABC):
    @abstractmethod
    def capabilities(self) -> Mapping[str, bool]: ...

    @abstractmethod
    def device_defaults(self) -> Mapping[str, Any]: ...

    @abstractmethod
    def auto_focus(self) -> float: ...

    @abstractmethod
    def auto_light(self) -> Mapping[str, int]: ...


class ConfigStoreInterface(ABC):
    @abstractmethod
    def load(self, path: Path) -> ReconConfig: ...

    @abstractmethod
    def save(self, path: Path, config: ReconConfig) -> None: ...
