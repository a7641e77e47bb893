"""High-level application controller that exposes the console control model to the UI."""

from __future__ import annotations

import itertools
from concurrent.futures import Future
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping

from recon_console.config.schema import ConsoleConfig
from recon_console.graphical_app.app.bindings import BindingTable
from recon_console.graphical_app.app.commands import CommandName, CommandRouter
from recon_console.graphical_app.app.dialogs import ConfigDraft, PhantomDraft, about_text
from recon_console.graphical_app.app.dispatcher import UiDispatcher
from recon_console.graphical_app.app.errors import ConsoleError, EngineFailure
from recon_console.graphical_app.app.input import IMAGE_PANEL, InputDispatcher, KeyEvent, Route
from recon_console.graphical_app.app.interfaces import (
    ConfigStoreInterface,
    EngineInterface,
    EngineResult,
    HardwareInterface,
    Intent,
    OperationResult,
    RunOutcome,
    failure_result,
    success_result,
)
from recon_console.graphical_app.app.session import Session
from recon_console.graphical_app.app.state import AppState, LogLevel, RunMetadata
from recon_console.graphical_app.app.values import CONFIG_FIELDS, PREVIEW_FIELDS, Field, ValueModel
from recon_console.graphical_app.engine.simulated import SimulatedEngine, SimulatedHardware, SimulationSettings
from recon_console.graphical_app.persistence.store import ConfigStore

TOOLBARS = ("navigation", "edge", "scan", "noise")
TOOLBAR_CHOICES: Dict[str, tuple[str, ...]] = {
    "All toolbars": TOOLBARS,
    "Navigation": ("navigation",),
    "Edge enhancement": ("edge",),
    "Scan correction": ("scan",),
    "Noise": ("noise",),
}

DEVICE_DEFAULT_FIELDS = {"distance": Field.DISTANCE, "window": Field.WINDOW, "level": Field.LEVEL}

DialogOpener = Callable[[str, Any], None]
EnableListener = Callable[[Dict[str, bool]], None]


class AppController:
    def __init__(
        self,
        config: ConsoleConfig | None = None,
        engine: EngineInterface | None = None,
        hardware: HardwareInterface | None = None,
        store: ConfigStoreInterface | None = None,
        dispatcher: UiDispatcher | None = None,
    ) -> None:
        self.config = config or ConsoleConfig()
        self.state = AppState()
        self.engine = engine or SimulatedEngine(SimulationSettings.from_config(self.config.engine))
        self.hardware = hardware or SimulatedHardware(self.config.device)
        self.store = store or ConfigStore()
        self.dispatcher = dispatcher or UiDispatcher()
        self.model = ValueModel.from_config(self.config)
        self._apply_device_defaults()
        self.session = Session()
        self.bindings = BindingTable(self.model)
        self.router = CommandRouter(self.model, self.session, capabilities=self.hardware.capabilities)
        self.input = InputDispatcher(
            bindings=self.bindings,
            run_command=self._run_accelerator,
            pan=self.engine.pan,
            progress_visible=lambda: self.session.progress.visible,
        )
        self.dialog_opener: DialogOpener | None = None
        self.quit_confirm: Callable[[], bool] | None = None
        self.quit_requested = False
        self.exit_code = 0
        self.visible_toolbars: tuple[str, ...] = TOOLBARS
        self._enable_listeners: List[EnableListener] = []
        self._enabled: Dict[str, bool] = self.router.enabled()
        self._run_ids = itertools.count(1)

        self._register_intents()
        for name in PREVIEW_FIELDS:
            self.model.subscribe(name, self._request_preview)
        self.model.subscribe_all(lambda _name, _value: self._recompute_enabled())
        self.session.subscribe(lambda _session: self._recompute_enabled())
        self.engine.progress(lambda value: self.dispatcher.post(self.session.report_progress, value))

    # -- plumbing -------------------------------------------------------

    def _apply_device_defaults(self) -> None:
        defaults = self.hardware.device_defaults()
        for key, name in DEVICE_DEFAULT_FIELDS.items():
            if key in defaults:
                self.model.set_reset_value(name, defaults[key])
                self.model.reset(name)

    def _register_intents(self) -> None:
        handlers: Dict[str, Callable[[Intent], Any]] = {
            "session.reset": self._session_reset,
            "session.load": self._session_load,
            "session.shutdown": self._session_shutdown,
            "dialog.open_config": self._open_config,
            "dialog.open_phantoms": self._open_phantoms,
            "dialog.about": self._open_about,
            "engine.run": self._engine_run,
            "engine.cancel": self._engine_cancel,
            "engine.test_geometry": lambda intent: self.engine.test_geometry(intent.payload["snapshot"]),
            "engine.auto_geometry": lambda intent: self.engine.auto_geometry(intent.payload["snapshot"]),
            "hardware.auto_focus": self._auto_focus,
            "hardware.auto_light": self._auto_light,
        }
        for name, handler in handlers.items():
            self.router.register(name, handler)

    def _handle_exception(self, action: str, exc: Exception) -> OperationResult:
        message = f"{action} failed: {exc}"
        self.state.notify(message)
        self.state.set_status(message)
        self.state.add_command_log(action, "failure", message, level=LogLevel.ERROR)
        code = exc.code if isinstance(exc, ConsoleError) else type(exc).__name__
        return failure_result(message, code=code, details={"action": action, "exception": type(exc).__name__})

    def _run(self, action: str, fn: Callable[[], Any], ok_message: str, payload: Any | None = None) -> OperationResult:
        self.state.add_command_log(action, "start", f"Starting {action}")
        try:
            result = fn()
            self.state.add_command_log(action, "success", ok_message)
            return success_result(ok_message, payload=result if payload is None else payload)
        except (ConsoleError, OSError, ValueError, KeyError) as exc:
            return self._handle_exception(action, exc)

    def _request_preview(self, _name: Field, _value: Any) -> None:
        self.engine.refresh(self.model.snapshot())

    def _recompute_enabled(self) -> None:
        vector = self.router.enabled()
        if vector == self._enabled:
            return
        self._enabled = vector
        for listener in list(self._enable_listeners):
            listener(dict(vector))

    def add_enable_listener(self, listener: EnableListener) -> None:
        self._enable_listeners.append(listener)

    def enabled(self) -> Dict[str, bool]:
        return dict(self._enabled)

    def poll(self) -> int:
        """Run messages marshalled from the engine thread; call from the UI loop."""
        return self.dispatcher.drain()

    def startup(self) -> OperationResult:
        return self._run("startup", self.engine.start, "Engine started")

    # -- intent handlers ------------------------------------------------

    def _session_reset(self, _intent: Intent) -> List[Field]:
        changed = self.model.reset_all(name for name in Field if name not in CONFIG_FIELDS)
        self.session.last_result = None
        self.state.set_status("New session")
        return changed

    def _session_load(self, intent: Intent) -> List[Field]:
        path = Path(intent.payload["path"])
        recon = self.store.load(path)
        updates: Dict[Field, Any] = {name: getattr(recon, name.value) for name in CONFIG_FIELDS if name is not Field.ANGLE_TABLE}
        updates[Field.ANGLE_TABLE] = recon.angle_table
        changed = self.model.set_many(updates)
        self.state.config_path = str(path)
        self.state.set_status(f"Loaded {path.name}")
        return changed

    def _session_shutdown(self, _intent: Intent) -> int:
        if self.session.running:
            self.engine.cancel()
        self.engine.shutdown()
        self.quit_requested = True
        self.state.set_status("Shutting down")
        return self.exit_code

    def _open_dialog(self, kind: str, model: Any) -> Any:
        if self.dialog_opener is not None:
            self.dialog_opener(kind, model)
        return model

    def _open_config(self, _intent: Intent) -> ConfigDraft:
        return self._open_dialog("config", ConfigDraft.from_model(self.model, self.store))

    def _open_phantoms(self, intent: Intent) -> PhantomDraft:
        return self._open_dialog("phantoms", PhantomDraft.from_model(self.model, intent.payload["kind"]))

    def _open_about(self, _intent: Intent) -> str:
        return self._open_dialog("about", about_text())

    def _engine_run(self, intent: Intent) -> str:
        run_id = f"run-{next(self._run_ids):03d}"
        snapshot = intent.payload["snapshot"]
        self.session.begin(run_id)
        try:
            future = self.engine.run(snapshot)
        except ConsoleError as exc:
            self.session.finish(EngineResult(RunOutcome.FAILED, reason=str(exc)))
            raise
        self.state.active_run = RunMetadata(
            run_id=run_id,
            started_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            parameters=snapshot.as_dict(),
        )
        self.state.set_status(f"Running {run_id}")
        future.add_done_callback(lambda done: self.dispatcher.post(self._on_run_done, run_id, done))
        return run_id

    def _on_run_done(self, run_id: str, future: "Future[EngineResult]") -> None:
        try:
            result = future.result()
        except Exception as exc:  # engine-side crash becomes a failed run
            result = EngineResult(RunOutcome.FAILED, reason=str(exc) or type(exc).__name__)
        self.session.finish(result)
        self.state.active_run = None
        self.state.last_run_status = result.status_text
        self.state.set_status(result.status_text)
        if result.outcome is RunOutcome.FAILED:
            failure = EngineFailure(result.reason)
            self.state.notify(str(failure))
            self.state.add_log(LogLevel.ERROR, f"{run_id}: {failure}", source="engine")
        else:
            self.state.add_log(LogLevel.INFO, f"{run_id}: {result.status_text}", source="engine")

    def _engine_cancel(self, _intent: Intent) -> bool:
        if not self.session.request_cancel():
            return False
        self.engine.cancel()
        self.state.set_status("Cancelling")
        return True

    def _auto_focus(self, _intent: Intent) -> float:
        distance = self.hardware.auto_focus()
        self.model.set(Field.DISTANCE, distance)
        return self.model.get(Field.DISTANCE)

    def _auto_light(self, _intent: Intent) -> Dict[str, int]:
        levels = self.hardware.auto_light()
        self.model.set_many({Field.WINDOW: levels["window"], Field.LEVEL: levels["level"]})
        return {"window": self.model.get(Field.WINDOW), "level": self.model.get(Field.LEVEL)}

    # -- commands -------------------------------------------------------

    def command(self, name: CommandName | str, ok_message: str | None = None, **args: Any) -> OperationResult:
        name = CommandName(name)
        return self._run(name.value, lambda: self.router.dispatch(name, **args), ok_message or f"{name.value} done")

    def _run_accelerator(self, name: CommandName) -> None:
        if name is CommandName.QUIT:
            self.quit(self.quit_confirm)
        elif name is CommandName.OPEN and self.dialog_opener is not None and self.router.allowed(name):
            self.dialog_opener("open", None)
        else:
            self.command(name)

    def new_session(self) -> OperationResult:
        return self.command(CommandName.NEW, "New session")

    def open_config(self, path: str) -> OperationResult:
        return self.command(CommandName.OPEN, f"Configuration loaded from {path}", path=path)

    def configure(self) -> OperationResult:
        return self.command(CommandName.CONFIGURE, "Configuration dialog opened")

    def phantom_editor(self, kind: str = "resolution") -> OperationResult:
        name = CommandName.RES_LIST if kind == "resolution" else CommandName.CONT_LIST
        return self.command(name, f"{kind.title()} phantom editor opened")

    def about(self) -> OperationResult:
        return self.command(CommandName.ABOUT, "About")

    def run_test(self) -> OperationResult:
        return self.command(CommandName.RUN_TEST, "Reconstruction started")

    def cancel_run(self) -> OperationResult:
        return self.command(CommandName.CANCEL_RUN, "Cancellation requested")

    def test_geometry(self) -> OperationResult:
        return self.command(CommandName.TEST_GEO, "Geometry test complete")

    def auto_geometry(self) -> OperationResult:
        return self.command(CommandName.AUTO_GEO, "Automatic geometry complete")

    def auto_focus(self) -> OperationResult:
        return self.command(CommandName.AUTO_FOCUS, "Auto focus complete")

    def auto_light(self) -> OperationResult:
        return self.command(CommandName.AUTO_LIGHT, "Auto light complete")

    def auto_all(self) -> OperationResult:
        return self.command(CommandName.AUTO_ALL, "Auto focus and light complete")

    def reset(self, name: CommandName | str) -> OperationResult:
        return self.command(name, f"{CommandName(name).value} done")

    def quit(self, confirm: Callable[[], bool] | None = None) -> OperationResult:
        result = self.command(CommandName.QUIT, "Quit", confirm=confirm)
        if result.success and not self.quit_requested:
            return success_result("Quit aborted", payload=None)
        return result

    # -- dialog commits -------------------------------------------------

    def commit_config(self, draft: ConfigDraft) -> OperationResult:
        return self._run("config_ok", draft.ok, "Configuration applied")

    def load_config_into(self, draft: ConfigDraft, path: str) -> OperationResult:
        return self._run("config_load", lambda: draft.load(path), f"Loaded {Path(path).name}")

    def save_config_from(self, draft: ConfigDraft, path: str) -> OperationResult:
        return self._run("config_save", lambda: draft.save(path), f"Saved {Path(path).name}")

    def commit_phantoms(self, draft: PhantomDraft) -> OperationResult:
        return self._run("phantoms_ok", draft.ok, f"{draft.kind.title()} phantoms updated")

    def save_session(self, path: str) -> OperationResult:
        return self._run("save_session", lambda: self.store.snapshot_session(self.model.snapshot(), Path(path)), "Session saved")

    # -- control events -------------------------------------------------

    def set_value(self, name: Field, value: Any) -> OperationResult:
        return self._run("set_value", lambda: self.model.set(name, value), f"{name.value} updated")

    def slider_moved(self, control: str, position: Any) -> bool:
        return self.bindings.on_move(control, position)

    def slider_released(self, control: str, position: Any | None = None) -> bool:
        return self.bindings.on_release(control, position)

    def toggled(self, control: str, checked: bool) -> bool:
        return self.bindings.on_toggle(control, checked)

    def chosen(self, control: str, value: Any) -> OperationResult:
        return self._run(control, lambda: self.bindings.on_choice(control, value), f"{control} set to {value}")

    def text_edited(self, control: str, text: str) -> None:
        self.bindings.on_text(control, text)

    def text_committed(self, control: str) -> bool:
        return self.bindings.commit(control)

    def key(self, event: KeyEvent) -> Route:
        return self.input.handle(event)

    def select_page(self, title: str) -> None:
        self.state.active_page = title
        self.state.add_log(LogLevel.INFO, f"Page changed to {title}", source="ui")
        self.input.request_focus(IMAGE_PANEL, explicit=False)

    def select_toolbars(self, choice: str) -> tuple[str, ...]:
        if choice not in TOOLBAR_CHOICES:
            raise KeyError(f"Unknown toolbar choice '{choice}'")
        self.visible_toolbars = TOOLBAR_CHOICES[choice]
        return self.visible_toolbars

    def capabilities(self) -> Mapping[str, bool]:
        return self.hardware.capabilities()
