"""Simulated engine and hardware collaborators."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

import numpy as np

from recon_console.config.schema import DeviceConfig, EngineConfig
from recon_console.graphical_app.app.errors import EngineFailure, SessionBusy
from recon_console.graphical_app.app.interfaces import (
    EngineInterface,
    EngineResult,
    HardwareInterface,
    ProgressListener,
    RunOutcome,
)
from recon_console.graphical_app.app.values import Field, Snapshot


@dataclass
class SimulationSettings:
    steps: int = 20
    step_delay_s: float = 0.05
    fail_on_start: bool = False
    fail_at_step: int | None = None

    @classmethod
    def from_config(cls, config: EngineConfig) -> "SimulationSettings":
        return cls(steps=config.steps, step_delay_s=config.step_delay_s)


class SimulatedEngine(EngineInterface):
    """Stand-in reconstruction engine running jobs on a single worker thread."""

    def __init__(self, settings: SimulationSettings | None = None) -> None:
        self.settings = settings or SimulationSettings()
        self._executor: ThreadPoolExecutor | None = None
        self._cancel = threading.Event()
        self._listeners: List[ProgressListener] = []
        self._active: Future | None = None
        self.refreshes: List[Snapshot] = []
        self.pans: List[tuple[int, int]] = []

    def start(self) -> None:
        if self.settings.fail_on_start:
            raise EngineFailure("simulated engine refused to start")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recon-engine")

    def shutdown(self) -> None:
        self._cancel.set()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def progress(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def run(self, snapshot: Snapshot) -> "Future[EngineResult]":
        if self._executor is None:
            raise EngineFailure("engine not started")
        if self._active is not None and not self._active.done():
            raise SessionBusy("engine is already reconstructing")
        self._cancel.clear()
        self._active = self._executor.submit(self._job, snapshot)
        return self._active

    def cancel(self) -> None:
        self._cancel.set()

    def _job(self, snapshot: Snapshot) -> EngineResult:
        steps = max(1, int(self.settings.steps))
        for idx in range(steps):
            if self._cancel.is_set():
                return EngineResult(RunOutcome.CANCELLED)
            if self.settings.fail_at_step is not None and idx == self.settings.fail_at_step:
                return EngineResult(RunOutcome.FAILED, reason=f"back-projection diverged at step {idx}")
            time.sleep(self.settings.step_delay_s)
            for listener in list(self._listeners):
                listener((idx + 1) / steps)
        if self._cancel.is_set():
            return EngineResult(RunOutcome.CANCELLED)
        return EngineResult(RunOutcome.COMPLETED)

    def _angle_table(self, snapshot: Snapshot) -> np.ndarray:
        rows = [row.as_row() for row in snapshot[Field.ANGLE_TABLE]]
        return np.asarray(rows, dtype=float).reshape(-1, 5)

    def test_geometry(self, snapshot: Snapshot) -> Dict[str, Any]:
        table = self._angle_table(snapshot)
        if table.size == 0:
            return {"rows": 0, "residual_mm": 0.0}
        residual = float(np.sqrt(np.mean(table[:, 3] ** 2 + table[:, 4] ** 2)))
        return {"rows": int(table.shape[0]), "residual_mm": residual}

    def auto_geometry(self, snapshot: Snapshot) -> Dict[str, Any]:
        table = self._angle_table(snapshot)
        if table.size == 0:
            return {"rows": 0, "offset_correction_mm": [0.0, 0.0]}
        correction = -table[:, 3:5].mean(axis=0)
        return {"rows": int(table.shape[0]), "offset_correction_mm": [float(v) for v in correction]}

    def refresh(self, snapshot: Snapshot) -> None:
        self.refreshes.append(snapshot)

    def pan(self, dx: int, dy: int) -> None:
        self.pans.append((dx, dy))


class SimulatedHardware(HardwareInterface):
    def __init__(self, device: DeviceConfig | None = None) -> None:
        self.device = device or DeviceConfig()
        self.calls: List[str] = []

    def capabilities(self) -> Mapping[str, bool]:
        return {"auto_focus": bool(self.device.auto_focus), "auto_light": bool(self.device.auto_light)}

    def device_defaults(self) -> Mapping[str, Any]:
        return {"distance": float(self.device.distance_mm), "window": int(self.device.window), "level": int(self.device.level)}

    def auto_focus(self) -> float:
        self.calls.append("auto_focus")
        return float(self.device.distance_mm)

    def auto_light(self) -> Mapping[str, int]:
        self.calls.append("auto_light")
        return {"window": int(self.device.window), "level": int(self.device.level)}
