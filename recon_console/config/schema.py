"""Configuration schema for the reconstruction operator console."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any


ANGLE_TABLE_COLUMNS = ("angle_deg", "source_distance_mm", "detector_distance_mm", "offset_x_mm", "offset_y_mm")


@dataclass
class LimitsConfig:
    step_max: int = 100
    zoom_min: float = 0.1
    zoom_max: float = 10.0
    scan_max: int = 255
    noise_cap: int = 4095

    def validate(self) -> None:
        if self.step_max < 1:
            raise ValueError("limits.step_max must be >= 1")
        if not 0 < self.zoom_min <= 1.0 <= self.zoom_max:
            raise ValueError("limits.zoom_min/zoom_max must bracket 1.0 and be positive")
        if self.scan_max < 0:
            raise ValueError("limits.scan_max must be nonnegative")
        if self.noise_cap < 0:
            raise ValueError("limits.noise_cap must be nonnegative")


@dataclass
class DeviceConfig:
    distance_mm: float = 250.0
    window: int = 4096
    level: int = 2048
    auto_focus: bool = True
    auto_light: bool = True

    def validate(self) -> None:
        if not math.isfinite(self.distance_mm) or self.distance_mm < 0:
            raise ValueError("device.distance_mm must be finite and >= 0")
        for name in ("window", "level"):
            value = int(getattr(self, name))
            if not 0 <= value <= 65535:
                raise ValueError(f"device.{name} must be in [0, 65535]")


@dataclass
class ChoicesConfig:
    gain: list[str] = field(default_factory=lambda: ["Low", "Medium", "High"])
    orientation: list[str] = field(default_factory=lambda: ["Horizontal", "Vertical"])
    rotation: list[str] = field(default_factory=lambda: ["Stepped", "Continuous"])

    def validate(self) -> None:
        for name in ("gain", "orientation", "rotation"):
            if not getattr(self, name):
                raise ValueError(f"choices.{name} must be non-empty")


@dataclass
class ReconConfig:
    """Persisted reconstruction geometry record."""

    slice_thickness: float = 0.5
    pixel_width: float = 0.1
    pixel_height: float = 0.1
    pitch_width: float = 0.1
    pitch_height: float = 0.1
    orientation: str = "Horizontal"
    rotation_enabled: str = "Stepped"
    angle_table: list[list[float]] = field(default_factory=list)

    def validate(self) -> None:
        for name in ("slice_thickness", "pixel_width", "pixel_height", "pitch_width", "pitch_height"):
            value = float(getattr(self, name))
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"recon.{name} must be > 0")
        for idx, row in enumerate(self.angle_table):
            if len(row) != len(ANGLE_TABLE_COLUMNS):
                raise ValueError(f"recon.angle_table row {idx} must have {len(ANGLE_TABLE_COLUMNS)} cells")
            if not all(math.isfinite(float(cell)) for cell in row):
                raise ValueError(f"recon.angle_table row {idx} has a non-finite cell")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EngineConfig:
    steps: int = 20
    step_delay_s: float = 0.05

    def validate(self) -> None:
        if self.steps < 1:
            raise ValueError("engine.steps must be >= 1")
        if self.step_delay_s < 0:
            raise ValueError("engine.step_delay_s must be nonnegative")


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "recon_console.log"

    def validate(self) -> None:
        if self.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("logging.level must be a standard logging level name")


@dataclass
class ConsoleConfig:
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    choices: ChoicesConfig = field(default_factory=ChoicesConfig)
    recon: ReconConfig = field(default_factory=ReconConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        self.limits.validate()
        self.device.validate()
        self.choices.validate()
        self.recon.validate()
        self.engine.validate()
        self.logging.validate()
        if self.recon.orientation not in self.choices.orientation:
            raise ValueError(f"recon.orientation must be one of {self.choices.orientation}")
        if self.recon.rotation_enabled not in self.choices.rotation:
            raise ValueError(f"recon.rotation_enabled must be one of {self.choices.rotation}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "ANGLE_TABLE_COLUMNS",
    "ConsoleConfig",
    "LimitsConfig",
    "DeviceConfig",
    "ChoicesConfig",
    "ReconConfig",
    "EngineConfig",
    "LoggingConfig",
]
