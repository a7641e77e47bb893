"""Observable, bounded parameter store shared by every console control."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Sequence, Tuple

from recon_console.config.schema import ANGLE_TABLE_COLUMNS, ConsoleConfig
from recon_console.graphical_app.app.errors import InvalidSelection


class Field(str, Enum):
    DISTANCE = "distance"
    STEP = "step"
    WINDOW = "window"
    LEVEL = "level"
    ZOOM = "zoom"
    VERT_FLIP = "vert_flip"
    HOR_FLIP = "hor_flip"
    LOG_VIEW = "log_view"
    PROJECTION_VIEW = "projection_view"
    X_ENHANCE = "x_enhance"
    Y_ENHANCE = "y_enhance"
    ABS_ENHANCE = "abs_enhance"
    ENHANCE_RATIO = "enhance_ratio"
    SCAN_VERT_ENABLE = "scan_vert_enable"
    SCAN_VERT = "scan_vert"
    SCAN_HOR_ENABLE = "scan_hor_enable"
    SCAN_HOR = "scan_hor"
    OUTLIER_ENABLE = "outlier_enable"
    NOISE_MAX = "noise_max"
    GAIN_SELECTION = "gain_selection"
    SLICE_THICKNESS = "slice_thickness"
    PIXEL_WIDTH = "pixel_width"
    PIXEL_HEIGHT = "pixel_height"
    PITCH_WIDTH = "pitch_width"
    PITCH_HEIGHT = "pitch_height"
    ORIENTATION = "orientation"
    ROTATION_ENABLED = "rotation_enabled"
    ANGLE_TABLE = "angle_table"
    RESOLUTION_PHANTOMS = "resolution_phantoms"
    CONTRAST_PHANTOMS = "contrast_phantoms"


LENGTH_FIELDS = (
    Field.SLICE_THICKNESS,
    Field.PIXEL_WIDTH,
    Field.PIXEL_HEIGHT,
    Field.PITCH_WIDTH,
    Field.PITCH_HEIGHT,
)

# Fields edited through the configuration dialog and persisted by the config store.
CONFIG_FIELDS = LENGTH_FIELDS + (Field.ORIENTATION, Field.ROTATION_ENABLED, Field.ANGLE_TABLE)

# Fields whose changes require the engine to refresh the displayed image.
PREVIEW_FIELDS = (
    Field.WINDOW,
    Field.LEVEL,
    Field.ZOOM,
    Field.VERT_FLIP,
    Field.HOR_FLIP,
    Field.LOG_VIEW,
    Field.PROJECTION_VIEW,
    Field.X_ENHANCE,
    Field.Y_ENHANCE,
    Field.ABS_ENHANCE,
    Field.ENHANCE_RATIO,
    Field.SCAN_VERT_ENABLE,
    Field.SCAN_VERT,
    Field.SCAN_HOR_ENABLE,
    Field.SCAN_HOR,
    Field.OUTLIER_ENABLE,
    Field.NOISE_MAX,
)

PHANTOM_FIELDS = {"resolution": Field.RESOLUTION_PHANTOMS, "contrast": Field.CONTRAST_PHANTOMS}


class CoercionError(ValueError):
    """Raised when a numeric input cannot be interpreted at all."""


@dataclass(frozen=True)
class Phantom:
    label: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    value: float = 0.0


@dataclass(frozen=True)
class ProjectionAngle:
    angle_deg: float = 0.0
    source_distance_mm: float = 0.0
    detector_distance_mm: float = 0.0
    offset_x_mm: float = 0.0
    offset_y_mm: float = 0.0

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "ProjectionAngle":
        if len(row) != len(ANGLE_TABLE_COLUMNS):
            raise CoercionError(f"angle row needs {len(ANGLE_TABLE_COLUMNS)} cells, got {len(row)}")
        return cls(*(_to_number(cell) for cell in row))

    def as_row(self) -> List[float]:
        return [getattr(self, name) for name in ANGLE_TABLE_COLUMNS]

    def is_finite(self) -> bool:
        return all(math.isfinite(cell) for cell in self.as_row())


def _to_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise CoercionError(f"not a number: {value!r}") from exc
    if not math.isfinite(number):
        raise CoercionError(f"not finite: {value!r}")
    return number


@dataclass(frozen=True)
class IntRange:
    lo: int
    hi: int

    def coerce(self, name: str, value: Any) -> int:
        return int(min(max(int(round(_to_number(value))), self.lo), self.hi))

    def contains(self, value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and self.lo <= value <= self.hi


@dataclass(frozen=True)
class FloatRange:
    lo: float
    hi: float = math.inf

    def coerce(self, name: str, value: Any) -> float:
        return float(min(max(_to_number(value), self.lo), self.hi))

    def contains(self, value: Any) -> bool:
        return isinstance(value, float) and math.isfinite(value) and self.lo <= value <= self.hi


@dataclass(frozen=True)
class Flag:
    def coerce(self, name: str, value: Any) -> bool:
        return bool(value)

    def contains(self, value: Any) -> bool:
        return isinstance(value, bool)


@dataclass(frozen=True)
class Choice:
    options: Tuple[str, ...]

    def coerce(self, name: str, value: Any) -> str:
        if value not in self.options:
            raise InvalidSelection(name, value, self.options)
        return value

    def contains(self, value: Any) -> bool:
        return value in self.options


@dataclass(frozen=True)
class Records:
    record_type: type

    def coerce(self, name: str, value: Any) -> tuple:
        out = []
        for item in value or ():
            if isinstance(item, self.record_type):
                out.append(self._from_mapping(name, asdict(item)))
            elif isinstance(item, Mapping):
                out.append(self._from_mapping(name, item))
            elif self.record_type is ProjectionAngle:
                out.append(ProjectionAngle.from_row(item))
            else:
                raise CoercionError(f"{name}: cannot build {self.record_type.__name__} from {item!r}")
        return tuple(out)

    def _from_mapping(self, name: str, item: Mapping[str, Any]) -> Any:
        # Numeric columns are held to finite floats; anything else is text.
        values: Dict[str, Any] = {}
        for column in fields(self.record_type):
            if column.name not in item:
                continue
            raw = item[column.name]
            try:
                values[column.name] = _to_number(raw) if isinstance(column.default, float) else str(raw)
            except CoercionError as exc:
                raise CoercionError(f"{name}.{column.name}: {exc}") from exc
        return self.record_type(**values)

    def contains(self, value: Any) -> bool:
        return isinstance(value, tuple) and all(isinstance(item, self.record_type) for item in value)


Domain = IntRange | FloatRange | Flag | Choice | Records


@dataclass
class FieldSpec:
    domain: Domain
    reset: Any


def build_field_specs(config: ConsoleConfig) -> Dict[Field, FieldSpec]:
    limits = config.limits
    device = config.device
    recon = config.recon
    choices = config.choices
    specs: Dict[Field, FieldSpec] = {
        Field.DISTANCE: FieldSpec(FloatRange(0.0), float(device.distance_mm)),
        Field.STEP: FieldSpec(IntRange(1, int(limits.step_max)), 1),
        Field.WINDOW: FieldSpec(IntRange(0, 65535), int(device.window)),
        Field.LEVEL: FieldSpec(IntRange(0, 65535), int(device.level)),
        Field.ZOOM: FieldSpec(FloatRange(float(limits.zoom_min), float(limits.zoom_max)), 1.0),
        Field.ENHANCE_RATIO: FieldSpec(FloatRange(0.0, 1.0), 0.5),
        Field.SCAN_VERT: FieldSpec(IntRange(0, int(limits.scan_max)), 0),
        Field.SCAN_HOR: FieldSpec(IntRange(0, int(limits.scan_max)), 0),
        Field.NOISE_MAX: FieldSpec(IntRange(0, int(limits.noise_cap)), int(limits.noise_cap)),
        Field.GAIN_SELECTION: FieldSpec(Choice(tuple(choices.gain)), choices.gain[0]),
        Field.ORIENTATION: FieldSpec(Choice(tuple(choices.orientation)), recon.orientation),
        Field.ROTATION_ENABLED: FieldSpec(Choice(tuple(choices.rotation)), recon.rotation_enabled),
        Field.ANGLE_TABLE: FieldSpec(Records(ProjectionAngle), tuple(ProjectionAngle.from_row(r) for r in recon.angle_table)),
        Field.RESOLUTION_PHANTOMS: FieldSpec(Records(Phantom), ()),
        Field.CONTRAST_PHANTOMS: FieldSpec(Records(Phantom), ()),
    }
    for name in LENGTH_FIELDS:
        specs[name] = FieldSpec(FloatRange(0.0), float(getattr(recon, name.value)))
    for name in (
        Field.VERT_FLIP,
        Field.HOR_FLIP,
        Field.LOG_VIEW,
        Field.PROJECTION_VIEW,
        Field.X_ENHANCE,
        Field.Y_ENHANCE,
        Field.ABS_ENHANCE,
        Field.SCAN_VERT_ENABLE,
        Field.SCAN_HOR_ENABLE,
        Field.OUTLIER_ENABLE,
    ):
        specs[name] = FieldSpec(Flag(), False)
    return specs


@dataclass(frozen=True)
class Snapshot:
    """Immutable copy of the model handed to the engine."""

    values: Mapping[Field, Any]

    def __getitem__(self, name: Field) -> Any:
        return self.values[name]

    def get(self, name: Field, default: Any = None) -> Any:
        return self.values.get(name, default)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name, value in self.values.items():
            if name is Field.ANGLE_TABLE:
                out[name.value] = [row.as_row() for row in value]
            elif isinstance(value, tuple):
                out[name.value] = [asdict(item) for item in value]
            else:
                out[name.value] = value
        return out


Listener = Callable[[Field, Any], None]


@dataclass
class ValueModel:
    specs: Dict[Field, FieldSpec]
    _values: Dict[Field, Any] = field(init=False, default_factory=dict)
    _listeners: Dict[Field, List[Listener]] = field(init=False, default_factory=dict)
    _any_listeners: List[Listener] = field(init=False, default_factory=list)
    _pending: Deque[Tuple[Field, Any]] = field(init=False, default_factory=deque)
    _publishing: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        missing = [name.value for name in Field if name not in self.specs]
        if missing:
            raise ValueError(f"Missing field specs: {', '.join(missing)}")
        for name, spec in self.specs.items():
            self._values[name] = spec.domain.coerce(name.value, spec.reset)
            self._listeners[name] = []

    @classmethod
    def from_config(cls, config: ConsoleConfig) -> "ValueModel":
        return cls(build_field_specs(config))

    def get(self, name: Field) -> Any:
        return self._values[name]

    def domain(self, name: Field) -> Domain:
        return self.specs[name].domain

    def defaults(self, name: Field) -> Any:
        spec = self.specs[name]
        return spec.domain.coerce(name.value, spec.reset)

    def set_reset_value(self, name: Field, value: Any) -> None:
        spec = self.specs[name]
        spec.reset = spec.domain.coerce(name.value, value)

    def coerce(self, name: Field, value: Any) -> Any:
        return self.specs[name].domain.coerce(name.value, value)

    def set(self, name: Field, value: Any) -> bool:
        """Coerce and publish one value; returns False when nothing changed.

        Input that cannot be coerced keeps the stored value, so the control echoes it back.
        """
        try:
            return bool(self.set_many({name: value}))
        except CoercionError:
            return False

    def set_many(self, updates: Mapping[Field, Any]) -> List[Field]:
        """Write every update before any listener runs; any rejected value leaves the model untouched."""
        coerced = {name: self.coerce(name, value) for name, value in updates.items()}
        changed = [name for name in Field if name in coerced and coerced[name] != self._values[name]]
        for name in changed:
            self._values[name] = coerced[name]
        for name in changed:
            self._pending.append((name, self._values[name]))
        self._flush()
        return changed

    def reset(self, name: Field) -> bool:
        return self.set(name, self.defaults(name))

    def reset_all(self, names: Iterable[Field] | None = None) -> List[Field]:
        targets = list(names) if names is not None else list(Field)
        return self.set_many({name: self.defaults(name) for name in targets})

    def subscribe(self, name: Field, listener: Listener) -> Callable[[], None]:
        self._listeners[name].append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners[name]:
                self._listeners[name].remove(listener)

        return _unsubscribe

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        self._any_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._any_listeners:
                self._any_listeners.remove(listener)

        return _unsubscribe

    def _flush(self) -> None:
        # A set issued from inside a listener is queued behind the current round.
        if self._publishing:
            return
        self._publishing = True
        try:
            while self._pending:
                name, value = self._pending.popleft()
                for listener in list(self._listeners[name]) + list(self._any_listeners):
                    listener(name, value)
        except Exception:
            self._pending.clear()
            raise
        finally:
            self._publishing = False

    def snapshot(self) -> Snapshot:
        return Snapshot(MappingProxyType(dict(self._values)))
