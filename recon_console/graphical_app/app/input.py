"""Keyboard routing: accelerator table plus focused-widget fallthrough."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from recon_console.graphical_app.app.bindings import BindingTable, ControlKind
from recon_console.graphical_app.app.commands import CommandName

MAIN_WINDOW = "main_window"
IMAGE_PANEL = "image_panel"

ARROW_DELTAS: Dict[str, Tuple[int, int]] = {
    "Left": (-1, 0),
    "Right": (1, 0),
    "Up": (0, -1),
    "Down": (0, 1),
}

# Sliders grow to the right and upwards.
SLIDER_STEPS: Dict[str, int] = {"Left": -1, "Down": -1, "Right": 1, "Up": 1}


class KeyKind(str, Enum):
    DOWN = "down"
    UP = "up"


class Route(str, Enum):
    ACCELERATOR = "accelerator"
    SWALLOWED = "swallowed"
    PAN = "pan"
    SLIDER_STEP = "slider_step"
    FORWARDED = "forwarded"


@dataclass(frozen=True)
class KeyEvent:
    key: str
    kind: KeyKind = KeyKind.DOWN
    ctrl: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def chord(self) -> Tuple[bool, bool, bool, str]:
        key = self.key.lower() if len(self.key) == 1 else self.key
        return (self.ctrl, self.shift, self.alt, key)


DEFAULT_ACCELERATORS: Dict[Tuple[bool, bool, bool, str], CommandName] = {
    (True, False, False, "n"): CommandName.NEW,
    (True, False, False, "o"): CommandName.OPEN,
    (True, False, False, "q"): CommandName.QUIT,
}


@dataclass
class InputDispatcher:
    """Global key handling for the main window.

    Key events reach this dispatcher before any panel. Accelerators run their
    command on key-down and swallow the matching key-up; arrow keys pan the
    image or step the focused slider; anything else falls through to the
    focused panel via ``forward``.
    """

    bindings: BindingTable
    run_command: Callable[[CommandName], Any]
    pan: Callable[[int, int], Any]
    forward: Callable[[str, KeyEvent], Any] = lambda target, event: None
    progress_visible: Callable[[], bool] = lambda: False
    accelerators: Dict[Tuple[bool, bool, bool, str], CommandName] = field(default_factory=lambda: dict(DEFAULT_ACCELERATORS))
    focus: str = MAIN_WINDOW

    def request_focus(self, target: str, explicit: bool = True) -> bool:
        """Move focus; implicit moves are refused while the run-progress dialog is up."""
        if not explicit and self.progress_visible():
            return False
        self.focus = target
        return True

    def handle(self, event: KeyEvent) -> Route:
        chord = event.chord
        command: Optional[CommandName] = self.accelerators.get(chord)
        if command is not None:
            if event.kind is KeyKind.DOWN:
                self.run_command(command)
                return Route.ACCELERATOR
            return Route.SWALLOWED

        if event.key in ARROW_DELTAS and not (event.ctrl or event.alt):
            if self.focus == IMAGE_PANEL:
                if event.kind is KeyKind.DOWN:
                    self.pan(*ARROW_DELTAS[event.key])
                return Route.PAN
            if self.focus in self.bindings and self.bindings.binding(self.focus).kind is ControlKind.SLIDER:
                if event.kind is KeyKind.DOWN:
                    self.bindings.step(self.focus, SLIDER_STEPS[event.key])
                return Route.SLIDER_STEP

        self.forward(self.focus, event)
        return Route.FORWARDED
