"""Lifecycle of a reconstruction run and its progress surface."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from recon_console.graphical_app.app.dialogs import RunProgressModel
from recon_console.graphical_app.app.errors import SessionBusy
from recon_console.graphical_app.app.interfaces import EngineResult


class SessionPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


SessionListener = Callable[["Session"], None]


@dataclass
class Session:
    phase: SessionPhase = SessionPhase.IDLE
    run_id: Optional[str] = None
    cancel_requested: bool = False
    last_result: Optional[EngineResult] = None
    progress: RunProgressModel = field(default_factory=RunProgressModel)
    _listeners: List[SessionListener] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return self.phase is SessionPhase.RUNNING

    @property
    def status_text(self) -> str:
        if self.running:
            return "cancelling" if self.cancel_requested else f"running ({self.progress.gauge}%)"
        return self.last_result.status_text if self.last_result else "idle"

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def begin(self, run_id: str) -> None:
        if self.running:
            raise SessionBusy(f"Run '{self.run_id}' is still active")
        self.phase = SessionPhase.RUNNING
        self.run_id = run_id
        self.cancel_requested = False
        self.progress = RunProgressModel(visible=True, value=0.0, message="Reconstruction running")
        self._changed()

    def report_progress(self, value: float) -> None:
        if not self.running or not math.isfinite(value):
            return
        self.progress.value = min(max(float(value), 0.0), 1.0)
        self._changed()

    def request_cancel(self) -> bool:
        """Flag cancellation; the phase only changes once the engine confirms."""
        if not self.running or self.cancel_requested:
            return False
        self.cancel_requested = True
        self.progress.message = "Cancelling"
        self._changed()
        return True

    def finish(self, result: EngineResult) -> None:
        if not self.running:
            return
        self.phase = SessionPhase.IDLE
        self.last_result = result
        self.cancel_requested = False
        self.progress.visible = False
        self.progress.message = result.status_text
        self._changed()
