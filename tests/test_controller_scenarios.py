import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from concurrent.futures import Future

from recon_console.config.schema import ConsoleConfig, DeviceConfig, ReconConfig
from recon_console.graphical_app.app.controller import AppController
from recon_console.graphical_app.app.dialogs import ConfigDraft, PhantomDraft
from recon_console.graphical_app.app.errors import EngineFailure
from recon_console.graphical_app.app.input import IMAGE_PANEL, KeyEvent, KeyKind, Route
from recon_console.graphical_app.app.interfaces import EngineInterface, EngineResult, RunOutcome
from recon_console.graphical_app.app.session import SessionPhase
from recon_console.graphical_app.app.values import Field, ProjectionAngle
from recon_console.graphical_app.engine.simulated import SimulatedHardware
from recon_console.graphical_app.persistence.store import ConfigStore


class FakeEngine(EngineInterface):
    def __init__(self, fail_run: bool = False) -> None:
        self.fail_run = fail_run
        self.started = False
        self.stopped = False
        self.cancels = 0
        self.listeners = []
        self.futures = []
        self.refreshes = []
        self.pans = []

    def start(self):
        self.started = True

    def shutdown(self):
        self.stopped = True

    def run(self, snapshot):
        if self.fail_run:
            raise EngineFailure("detector offline")
        future = Future()
        self.futures.append(future)
        return future

    def cancel(self):
        self.cancels += 1

    def progress(self, listener):
        self.listeners.append(listener)

    def report(self, value):
        for listener in self.listeners:
            listener(value)

    def test_geometry(self, snapshot):
        return {"rows": len(snapshot[Field.ANGLE_TABLE])}

    def auto_geometry(self, snapshot):
        return {"rows": len(snapshot[Field.ANGLE_TABLE]), "offset_correction_mm": [0.0, 0.0]}

    def refresh(self, snapshot):
        self.refreshes.append(snapshot)

    def pan(self, dx, dy):
        self.pans.append((dx, dy))


def _controller(engine=None, **device):
    config = ConsoleConfig(device=DeviceConfig(**{"window": 1000, "level": 500, "distance_mm": 300.0, **device}))
    engine = engine or FakeEngine()
    controller = AppController(config, engine=engine, hardware=SimulatedHardware(config.device), store=ConfigStore())
    return controller, engine


def test_slider_live_echo_refreshes_the_preview():
    c, engine = _controller()
    assert c.model.get(Field.WINDOW) == 1000
    notified = []
    c.model.subscribe(Field.WINDOW, lambda name, value: notified.append(value))
    for position in (1100, 1200, 1500):
        c.slider_moved("window_slider", position)
    assert notified == [1100, 1200, 1500]
    assert c.bindings.label("window_slider") == "1500"
    assert len(engine.refreshes) == 3
    assert engine.refreshes[-1][Field.WINDOW] == 1500


def test_reset_scan_vertical_keeps_slider_enabled():
    c, _ = _controller()
    c.toggled("scan_vert_enable", True)
    c.slider_moved("scan_vert_slider", 42)
    result = c.reset("reset_scan_vert")
    assert result.success
    assert c.model.get(Field.SCAN_VERT) == 0
    assert c.enabled()["scan_vert_slider"] is True
    assert c.bindings.label("scan_vert_slider") == "0"


def test_configuration_cancel_fires_no_listeners():
    c, _ = _controller()
    fired = []
    c.model.subscribe_all(lambda name, value: fired.append(name))
    opened = []
    c.dialog_opener = lambda kind, model: opened.append(kind)
    result = c.configure()
    draft = result.payload
    assert isinstance(draft, ConfigDraft)
    assert opened == ["config"]
    draft.edit(slice_thickness="0.9")
    draft.cancel()
    assert c.model.get(Field.SLICE_THICKNESS) == 0.5
    assert fired == []


def test_invalid_snapshot_keeps_session_idle():
    c, engine = _controller()
    c.model.set(Field.SLICE_THICKNESS, 0)
    result = c.run_test()
    assert result.success is False
    assert result.error.code == "invalid_configuration"
    assert "slice_thickness must be > 0" in result.message
    assert c.session.phase is SessionPhase.IDLE
    assert engine.futures == []
    assert c.state.notifications[-1] == result.message


def test_cancel_running_session():
    c, engine = _controller()
    started = c.run_test()
    assert started.success and started.payload == "run-001"
    assert c.session.running and c.session.progress.visible
    assert c.state.active_run.run_id == "run-001"

    engine.report(0.3)
    assert c.session.progress.value == 0.0
    c.poll()
    assert c.session.progress.gauge == 30

    cancelled = c.cancel_run()
    assert cancelled.success and cancelled.payload is True
    assert engine.cancels == 1
    assert c.session.running

    engine.futures[-1].set_result(EngineResult(RunOutcome.CANCELLED))
    assert c.session.running
    c.poll()
    assert c.session.phase is SessionPhase.IDLE
    assert c.session.progress.visible is False
    assert c.session.status_text == "cancelled"
    assert c.state.status_text == "cancelled"
    assert c.state.active_run is None


def test_resolution_phantom_round_trip():
    c, _ = _controller()
    draft = c.phantom_editor("resolution").payload
    assert isinstance(draft, PhantomDraft) and draft.rows == []
    draft.update(draft.add(), label="bar-1", x=10, width=2)
    draft.update(draft.add(), label="bar-2", y=5, height=3)
    assert c.commit_phantoms(draft).success
    original = c.model.get(Field.RESOLUTION_PHANTOMS)
    assert len(original) == 2

    reopened = c.phantom_editor("resolution").payload
    reopened.remove([0])
    reopened.cancel()
    assert c.model.get(Field.RESOLUTION_PHANTOMS) == original
    assert c.model.get(Field.CONTRAST_PHANTOMS) == ()


def test_engine_failure_returns_session_to_idle():
    c, engine = _controller()
    c.run_test()
    engine.futures[-1].set_result(EngineResult(RunOutcome.FAILED, reason="out of memory"))
    c.poll()
    assert c.session.phase is SessionPhase.IDLE
    assert c.state.status_text == "failed: out of memory"
    assert c.state.last_run_status == "failed: out of memory"
    assert c.state.notifications[-1] == "Engine failure: out of memory"
    assert any(entry.source == "engine" and entry.level.value == "error" for entry in c.state.logs)


def test_engine_crash_and_refused_run_are_failures():
    c, engine = _controller()
    c.run_test()
    engine.futures[-1].set_exception(RuntimeError("segfault in kernel"))
    c.poll()
    assert c.session.status_text == "failed: segfault in kernel"

    refusing, _ = _controller(engine=FakeEngine(fail_run=True))
    result = refusing.run_test()
    assert result.success is False
    assert result.error.code == "engine_failure"
    assert refusing.session.phase is SessionPhase.IDLE


def test_idle_only_commands_report_busy_while_running():
    c, _ = _controller()
    c.run_test()
    for result in (c.new_session(), c.configure(), c.auto_focus(), c.run_test()):
        assert result.success is False
        assert result.error.code == "session_busy"
    assert c.reset("reset_noise_max").success


def test_enable_listeners_fire_only_on_change():
    c, engine = _controller()
    vectors = []
    c.add_enable_listener(vectors.append)
    c.toggled("outlier_enable", True)
    c.toggled("outlier_enable", True)
    c.slider_moved("noise_max_slider", 10)
    assert len(vectors) == 1 and vectors[0]["noise_max_slider"] is True
    c.run_test()
    assert vectors[-1]["run_test"] is False and vectors[-1]["cancel_run"] is True
    engine.futures[-1].set_result(EngineResult(RunOutcome.COMPLETED))
    c.poll()
    assert vectors[-1]["run_test"] is True
    assert c.session.status_text == "completed"


def test_auto_commands_apply_hardware_values():
    c, _ = _controller(distance_mm=320.0)
    c.model.set(Field.DISTANCE, 100.0)
    c.model.set(Field.WINDOW, 1)
    result = c.auto_all()
    assert result.success
    assert result.payload == [320.0, {"window": 1000, "level": 500}]
    assert c.hardware.calls == ["auto_focus", "auto_light"]
    assert c.bindings.label("distance_entry") == "320.00"


def test_missing_capability_disables_auto_commands():
    c, _ = _controller(auto_light=False)
    assert c.enabled()["auto_all"] is False
    result = c.auto_light()
    assert result.error.code == "command_unavailable"
    assert c.auto_focus().success


def test_new_session_resets_view_but_keeps_configuration():
    c, _ = _controller()
    c.model.set_many({Field.WINDOW: 5, Field.VERT_FLIP: True, Field.SLICE_THICKNESS: 0.9})
    assert c.new_session().success
    assert c.model.get(Field.WINDOW) == 1000
    assert c.model.get(Field.VERT_FLIP) is False
    assert c.model.get(Field.SLICE_THICKNESS) == 0.9


def test_open_loads_configuration_record(tmp_path):
    c, _ = _controller()
    path = tmp_path / "recon.yaml"
    ConfigStore().save(path, ReconConfig(slice_thickness=0.8, angle_table=[[0, 500, 700, 0.1, -0.1]]))
    result = c.open_config(str(path))
    assert result.success
    assert c.model.get(Field.SLICE_THICKNESS) == 0.8
    assert c.model.get(Field.ANGLE_TABLE) == (ProjectionAngle(0.0, 500.0, 700.0, 0.1, -0.1),)
    assert c.state.config_path == str(path)


def test_open_failures_leave_model_unchanged(tmp_path):
    c, _ = _controller()
    missing = c.open_config(str(tmp_path / "missing.yaml"))
    assert missing.error.code == "config_load_failed"
    odd = tmp_path / "odd.yaml"
    ConfigStore().save(odd, ReconConfig(slice_thickness=0.9, orientation="Diagonal"))
    result = c.open_config(str(odd))
    assert result.error.code == "invalid_selection"
    assert c.model.get(Field.SLICE_THICKNESS) == 0.5


def test_open_rejects_non_finite_angle_cells(tmp_path):
    c, _ = _controller()
    table_before = c.model.get(Field.ANGLE_TABLE)
    path = tmp_path / "nan.yaml"
    path.write_text("slice_thickness: 0.9\nangle_table:\n  - [0, 1, 2, .nan, 4]\n", encoding="utf-8")
    result = c.open_config(str(path))
    assert not result.success
    assert result.error.code == "config_load_failed"
    assert c.model.get(Field.SLICE_THICKNESS) == 0.5
    assert c.model.get(Field.ANGLE_TABLE) == table_before


def test_config_dialog_commit_and_save(tmp_path):
    c, _ = _controller()
    draft = c.configure().payload
    draft.edit(pitch_width="0.4")
    saved = c.save_config_from(draft, str(tmp_path / "out.yaml"))
    assert saved.success
    assert c.model.get(Field.PITCH_WIDTH) == 0.1
    committed = c.commit_config(draft)
    assert committed.success and committed.payload == [Field.PITCH_WIDTH]
    assert c.model.get(Field.PITCH_WIDTH) == 0.4
    bad = c.configure().payload
    bad.edit(pitch_width="nope")
    assert c.commit_config(bad).error.code == "invalid_configuration"


def test_quit_flow_and_exit_code():
    c, engine = _controller()
    result = c.quit()
    assert result.success and result.payload == 0
    assert c.quit_requested and engine.stopped

    busy, busy_engine = _controller()
    busy.run_test()
    aborted = busy.quit(lambda: False)
    assert aborted.message == "Quit aborted"
    assert busy.quit_requested is False and busy_engine.stopped is False
    assert busy.key(KeyEvent("q", ctrl=True)) is Route.ACCELERATOR
    assert busy.quit_requested is False and busy.session.running
    assert busy.quit(lambda: True).payload == 0
    assert busy_engine.cancels == 1 and busy_engine.stopped


def test_keyboard_routes_through_controller():
    c, engine = _controller()
    c.model.set(Field.WINDOW, 5)
    assert c.key(KeyEvent("n", ctrl=True)) is Route.ACCELERATOR
    assert c.key(KeyEvent("n", kind=KeyKind.UP, ctrl=True)) is Route.SWALLOWED
    assert c.model.get(Field.WINDOW) == 1000

    c.select_page("Image")
    assert c.input.focus == IMAGE_PANEL
    assert c.key(KeyEvent("Right")) is Route.PAN
    assert engine.pans == [(1, 0)]

    opened = []
    c.dialog_opener = lambda kind, model: opened.append(kind)
    c.key(KeyEvent("o", ctrl=True))
    assert opened == ["open"]


def test_open_accelerator_is_refused_while_running():
    c, _ = _controller()
    opened = []
    c.dialog_opener = lambda kind, model: opened.append(kind)
    c.run_test()
    assert c.key(KeyEvent("o", ctrl=True)) is Route.ACCELERATOR
    assert opened == []
    assert c.state.notifications[-1].startswith("open failed")
    assert "while a reconstruction is running" in c.state.notifications[-1]


def test_page_change_does_not_steal_focus_during_a_run():
    c, _ = _controller()
    c.input.request_focus("step_slider")
    c.run_test()
    c.select_page("Logs")
    assert c.input.focus == "step_slider"
    assert c.state.active_page == "Logs"


def test_geometry_commands_and_session_snapshot(tmp_path):
    c, _ = _controller()
    c.model.set(Field.ANGLE_TABLE, [[0, 500, 700, 0, 0]])
    assert c.test_geometry().payload == {"rows": 1}
    assert c.auto_geometry().payload["rows"] == 1
    path = tmp_path / "session.json"
    assert c.save_session(str(path)).success
    assert c.store.load_json(path)["values"]["window"] == 1000


def test_toolbar_choice_and_about():
    c, _ = _controller()
    assert c.select_toolbars("Noise") == ("noise",)
    assert c.visible_toolbars == ("noise",)
    about = c.about()
    assert about.success and "Tomography" in about.payload


def test_startup_failure_is_reported():
    from recon_console.graphical_app.engine.simulated import SimulatedEngine, SimulationSettings

    c = AppController(ConsoleConfig(), engine=SimulatedEngine(SimulationSettings(fail_on_start=True)))
    result = c.startup()
    assert result.success is False
    assert result.error.code == "engine_failure"


def test_run_gui_app_exit_code_on_engine_start_failure(tmp_path, monkeypatch):
    import importlib

    from recon_console.graphical_app.app import controller as controller_module
    from recon_console.graphical_app.engine.simulated import SimulationSettings

    module = importlib.import_module("recon_console.run_gui_app")
    assert str(module._ensure_repo_root_on_path()) in sys.path
    monkeypatch.setattr(controller_module.SimulationSettings, "from_config", classmethod(lambda cls, config: SimulationSettings(fail_on_start=True)))
    log_file = tmp_path / "console.log"
    assert module.main(["--set", f"logging.file={log_file}"]) == 1
