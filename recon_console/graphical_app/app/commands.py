"""Named console commands and the intents they route to collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping

from recon_console.graphical_app.app.enable_graph import enabled_controls
from recon_console.graphical_app.app.errors import CommandUnavailable, InvalidConfiguration, SessionBusy
from recon_console.graphical_app.app.interfaces import Intent
from recon_console.graphical_app.app.session import Session
from recon_console.graphical_app.app.values import (
    LENGTH_FIELDS,
    Field,
    FloatRange,
    IntRange,
    ProjectionAngle,
    Snapshot,
    ValueModel,
)


class CommandName(str, Enum):
    NEW = "new"
    OPEN = "open"
    QUIT = "quit"
    CONFIGURE = "configure"
    RES_LIST = "res_list"
    CONT_LIST = "cont_list"
    RUN_TEST = "run_test"
    CANCEL_RUN = "cancel_run"
    TEST_GEO = "test_geo"
    AUTO_GEO = "auto_geo"
    AUTO_FOCUS = "auto_focus"
    AUTO_LIGHT = "auto_light"
    AUTO_ALL = "auto_all"
    RESET_ENHANCE = "reset_enhance"
    RESET_SCAN_VERT = "reset_scan_vert"
    RESET_SCAN_HOR = "reset_scan_hor"
    RESET_NOISE_MAX = "reset_noise_max"
    ABOUT = "about"


RESET_TARGETS: Dict[CommandName, Field] = {
    CommandName.RESET_ENHANCE: Field.ENHANCE_RATIO,
    CommandName.RESET_SCAN_VERT: Field.SCAN_VERT,
    CommandName.RESET_SCAN_HOR: Field.SCAN_HOR,
    CommandName.RESET_NOISE_MAX: Field.NOISE_MAX,
}

_INTENTS: Dict[CommandName, tuple[str, str]] = {
    CommandName.NEW: ("session", "reset"),
    CommandName.OPEN: ("session", "load"),
    CommandName.QUIT: ("session", "shutdown"),
    CommandName.CONFIGURE: ("dialog", "open_config"),
    CommandName.RES_LIST: ("dialog", "open_phantoms"),
    CommandName.CONT_LIST: ("dialog", "open_phantoms"),
    CommandName.RUN_TEST: ("engine", "run"),
    CommandName.CANCEL_RUN: ("engine", "cancel"),
    CommandName.TEST_GEO: ("engine", "test_geometry"),
    CommandName.AUTO_GEO: ("engine", "auto_geometry"),
    CommandName.AUTO_FOCUS: ("hardware", "auto_focus"),
    CommandName.AUTO_LIGHT: ("hardware", "auto_light"),
    CommandName.ABOUT: ("dialog", "about"),
}


def validate_snapshot(snapshot: Snapshot, model: ValueModel) -> List[str]:
    """Return the reasons a snapshot cannot be handed to the engine (empty when valid)."""
    reasons: List[str] = []
    for name, value in snapshot.values.items():
        domain = model.domain(name)
        if isinstance(domain, (IntRange, FloatRange)) and not domain.contains(value):
            reasons.append(f"{name.value}={value!r} outside [{domain.lo}, {domain.hi}]")
    if snapshot.get(Field.GAIN_SELECTION) is None:
        reasons.append("gain_selection is not set")
    for name in LENGTH_FIELDS:
        if not snapshot[name] > 0:
            reasons.append(f"{name.value} must be > 0")
    for idx, row in enumerate(snapshot[Field.ANGLE_TABLE]):
        if not isinstance(row, ProjectionAngle) or not row.is_finite():
            reasons.append(f"angle_table row {idx} is not finite")
    return reasons


IntentHandler = Callable[[Intent], Any]


@dataclass
class CommandRouter:
    """Checks command availability, builds intents, and hands them to registered handlers."""

    model: ValueModel
    session: Session
    capabilities: Callable[[], Mapping[str, bool]] = dict
    _handlers: Dict[str, IntentHandler] = field(default_factory=dict)

    def register(self, intent_name: str, handler: IntentHandler) -> None:
        self._handlers[intent_name] = handler

    def enabled(self) -> Dict[str, bool]:
        return enabled_controls(self.model.snapshot().values, self.session.running, self.capabilities())

    def allowed(self, name: CommandName) -> bool:
        return self.enabled().get(name.value, True)

    def _check(self, name: CommandName) -> None:
        if self.allowed(name):
            return
        idle_vector = enabled_controls(self.model.snapshot().values, False, self.capabilities())
        if self.session.running and idle_vector.get(name.value, True):
            raise SessionBusy(f"'{name.value}' is unavailable while a reconstruction is running")
        raise CommandUnavailable(f"'{name.value}' is not available")

    def intent_for(self, name: CommandName, **args: Any) -> Intent:
        snapshot = self.model.snapshot()
        if name in RESET_TARGETS:
            return Intent("model", "reset", {"field": RESET_TARGETS[name]})
        target, action = _INTENTS[name]
        payload: Dict[str, Any] = dict(args)
        if target == "engine" and action != "cancel":
            payload["snapshot"] = snapshot
        if name is CommandName.RES_LIST:
            payload["kind"] = "resolution"
        elif name is CommandName.CONT_LIST:
            payload["kind"] = "contrast"
        return Intent(target, action, payload)

    def dispatch(self, name: CommandName | str, **args: Any) -> Any:
        name = CommandName(name)
        if name is CommandName.AUTO_ALL:
            self._check(name)
            return [self.dispatch(CommandName.AUTO_FOCUS), self.dispatch(CommandName.AUTO_LIGHT)]
        if name is CommandName.QUIT:
            confirm = args.pop("confirm", None)
            if self.session.running and (confirm is None or not confirm()):
                return None
        self._check(name)
        intent = self.intent_for(name, **args)
        if name is CommandName.RUN_TEST:
            reasons = validate_snapshot(intent.payload["snapshot"], self.model)
            if reasons:
                raise InvalidConfiguration(reasons)
        if intent.name == "model.reset":
            return self.model.reset(intent.payload["field"])
        handler = self._handlers.get(intent.name)
        if handler is None:
            raise CommandUnavailable(f"No handler registered for intent '{intent.name}'")
        return handler(intent)
