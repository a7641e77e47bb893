"""Bindings between console affordances and Value Model fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Tuple

from recon_console.graphical_app.app.values import Field, FloatRange, IntRange, ValueModel


class Direction(str, Enum):
    VIEW_ONLY = "view_only"
    EDIT_ONLY = "edit_only"
    BIDIRECTIONAL = "bidirectional"


class Commit(str, Enum):
    LIVE = "live"
    FINAL = "final"
    EXPLICIT = "explicit"


class ControlKind(str, Enum):
    SLIDER = "slider"
    CHECKBOX = "checkbox"
    ENTRY = "entry"
    CHOICE = "choice"


def _identity(value: Any) -> Any:
    return value


def _scaled(factor: float) -> Tuple[Callable[[Any], Any], Callable[[Any], int]]:
    return (lambda position: float(position) / factor, lambda value: int(round(float(value) * factor)))


@dataclass(frozen=True)
class ControlBinding:
    control: str
    field: Field
    kind: ControlKind
    direction: Direction = Direction.BIDIRECTIONAL
    commit: Commit = Commit.LIVE
    to_value: Callable[[Any], Any] = _identity
    to_position: Callable[[Any], Any] = _identity
    fmt: Callable[[Any], str] = str
    label: str | None = None
    units: str = ""


def _slider(control: str, name: Field, label: str, fmt: Callable[[Any], str] = str, scale: float | None = None, units: str = "") -> ControlBinding:
    to_value, to_position = _scaled(scale) if scale else (_identity, _identity)
    return ControlBinding(
        control=control,
        field=name,
        kind=ControlKind.SLIDER,
        to_value=to_value,
        to_position=to_position,
        fmt=fmt,
        label=label,
        units=units,
    )


def _checkbox(control: str, name: Field) -> ControlBinding:
    return ControlBinding(control=control, field=name, kind=ControlKind.CHECKBOX, fmt=lambda v: "on" if v else "off")


def default_bindings() -> List[ControlBinding]:
    return [
        ControlBinding(
            control="distance_entry",
            field=Field.DISTANCE,
            kind=ControlKind.ENTRY,
            commit=Commit.EXPLICIT,
            to_value=float,
            fmt=lambda v: f"{v:.2f}",
            label="distance_entry",
            units="mm",
        ),
        _slider("step_slider", Field.STEP, "step_val", units="steps"),
        _slider("window_slider", Field.WINDOW, "window_val"),
        _slider("level_slider", Field.LEVEL, "level_val"),
        _slider("zoom_slider", Field.ZOOM, "zoom_val", fmt=lambda v: f"{v:.1f}", scale=10.0, units="x"),
        _slider("enhance_slider", Field.ENHANCE_RATIO, "ratio_value", fmt=lambda v: f"{v:.2f}", scale=100.0),
        _slider("scan_vert_slider", Field.SCAN_VERT, "scan_vert_value"),
        _slider("scan_hor_slider", Field.SCAN_HOR, "scan_hor_value"),
        _slider("noise_max_slider", Field.NOISE_MAX, "noise_max_val"),
        _checkbox("vert_flip", Field.VERT_FLIP),
        _checkbox("hor_flip", Field.HOR_FLIP),
        _checkbox("log_view", Field.LOG_VIEW),
        _checkbox("projection_view", Field.PROJECTION_VIEW),
        _checkbox("x_enhance", Field.X_ENHANCE),
        _checkbox("y_enhance", Field.Y_ENHANCE),
        _checkbox("abs_enhance", Field.ABS_ENHANCE),
        _checkbox("scan_vert_enable", Field.SCAN_VERT_ENABLE),
        _checkbox("scan_hor_enable", Field.SCAN_HOR_ENABLE),
        _checkbox("outlier_enable", Field.OUTLIER_ENABLE),
        ControlBinding(control="gain_choice", field=Field.GAIN_SELECTION, kind=ControlKind.CHOICE),
        ControlBinding(control="orientation_radio", field=Field.ORIENTATION, kind=ControlKind.CHOICE),
        ControlBinding(control="rotation_radio", field=Field.ROTATION_ENABLED, kind=ControlKind.CHOICE),
    ]


EchoListener = Callable[[str, str, Any], None]


@dataclass
class BindingTable:
    """Routes widget events into the model and echoes published values back to labels."""

    model: ValueModel
    bindings: Iterable[ControlBinding] = field(default_factory=default_bindings)
    _by_control: Dict[str, ControlBinding] = field(init=False, default_factory=dict)
    _labels: Dict[str, str] = field(init=False, default_factory=dict)
    _pending: Dict[str, Any] = field(init=False, default_factory=dict)
    _staged_text: Dict[str, str] = field(init=False, default_factory=dict)
    _echo_listeners: List[EchoListener] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        for binding in self.bindings:
            if binding.control in self._by_control:
                raise ValueError(f"Duplicate binding for control '{binding.control}'")
            if binding.kind is ControlKind.CHECKBOX and binding.commit is not Commit.LIVE:
                raise ValueError(f"Checkbox '{binding.control}' must commit live")
            self._by_control[binding.control] = binding
            if binding.direction is not Direction.EDIT_ONLY:
                self._labels[binding.control] = binding.fmt(self.model.get(binding.field))
        for name in {b.field for b in self._by_control.values()}:
            self.model.subscribe(name, self._on_publish)

    def __contains__(self, control: str) -> bool:
        return control in self._by_control

    def binding(self, control: str) -> ControlBinding:
        try:
            return self._by_control[control]
        except KeyError:
            raise KeyError(f"No binding for control '{control}'") from None

    def controls(self, kind: ControlKind | None = None) -> List[str]:
        return [name for name, b in self._by_control.items() if kind is None or b.kind is kind]

    def add_echo_listener(self, listener: EchoListener) -> None:
        self._echo_listeners.append(listener)

    def label(self, control: str) -> str:
        return self._labels[control]

    def position(self, control: str) -> Any:
        binding = self.binding(control)
        return binding.to_position(self.model.get(binding.field))

    def slider_range(self, control: str) -> Tuple[int, int]:
        binding = self.binding(control)
        domain = self.model.domain(binding.field)
        if not isinstance(domain, (IntRange, FloatRange)):
            raise ValueError(f"Control '{control}' is not bound to a numeric field")
        return int(binding.to_position(domain.lo)), int(binding.to_position(domain.hi))

    def _on_publish(self, name: Field, value: Any) -> None:
        for binding in self._by_control.values():
            if binding.field is name and binding.direction is not Direction.EDIT_ONLY:
                self._echo(binding, value)

    def _echo(self, binding: ControlBinding, value: Any) -> None:
        text = binding.fmt(value)
        self._labels[binding.control] = text
        for listener in list(self._echo_listeners):
            listener(binding.control, text, binding.to_position(value))

    def _publish(self, binding: ControlBinding, raw: Any) -> bool:
        if binding.direction is Direction.VIEW_ONLY:
            raise ValueError(f"Control '{binding.control}' is view-only")
        try:
            value = binding.to_value(raw)
        except (TypeError, ValueError):
            value = None
        if value is None:
            changed = False
        else:
            changed = self.model.set(binding.field, value)
        if not changed and binding.direction is not Direction.EDIT_ONLY:
            # Clamped or rejected input: reflect the stored value back into the control.
            self._echo(binding, self.model.get(binding.field))
        return changed

    def on_move(self, control: str, position: Any) -> bool:
        binding = self.binding(control)
        if binding.commit is Commit.LIVE:
            return self._publish(binding, position)
        self._pending[control] = position
        return False

    def on_release(self, control: str, position: Any | None = None) -> bool:
        binding = self.binding(control)
        if position is None:
            position = self._pending.get(control, self.position(control))
        self._pending.pop(control, None)
        if binding.commit is Commit.EXPLICIT:
            self._pending[control] = position
            return False
        return self._publish(binding, position)

    def on_toggle(self, control: str, checked: bool) -> bool:
        return self._publish(self.binding(control), bool(checked))

    def on_choice(self, control: str, value: Any) -> bool:
        return self._publish(self.binding(control), value)

    def on_text(self, control: str, text: str) -> None:
        self._staged_text[control] = text

    def commit(self, control: str) -> bool:
        """Publish staged text for an explicit control (Enter or focus loss)."""
        binding = self.binding(control)
        if control not in self._staged_text:
            return False
        text = self._staged_text.pop(control)
        return self._publish(binding, text.strip())

    def step(self, control: str, delta: int) -> bool:
        binding = self.binding(control)
        if binding.kind is not ControlKind.SLIDER:
            raise ValueError(f"Control '{control}' does not step")
        lo, hi = self.slider_range(control)
        position = min(max(int(self.position(control)) + int(delta), lo), hi)
        if binding.commit is Commit.LIVE:
            return self._publish(binding, position)
        return self.on_release(control, position)

    def parity_check(self, represented: Iterable[str]) -> List[str]:
        expected = set(self._by_control)
        present = set(represented)
        issues: List[str] = []
        missing = sorted(expected - present)
        extra = sorted(present - expected)
        if missing:
            issues.append(f"Missing controls for: {', '.join(missing)}")
        if extra:
            issues.append(f"Unexpected controls for: {', '.join(extra)}")
        return issues
