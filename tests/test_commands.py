import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from types import MappingProxyType

import pytest

from recon_console.config.schema import ConsoleConfig
from recon_console.graphical_app.app.commands import CommandName, CommandRouter, validate_snapshot
from recon_console.graphical_app.app.errors import CommandUnavailable, InvalidConfiguration, SessionBusy
from recon_console.graphical_app.app.session import Session
from recon_console.graphical_app.app.values import Field, ProjectionAngle, Snapshot, ValueModel


def _router(capabilities=None):
    model = ValueModel.from_config(ConsoleConfig())
    session = Session()
    router = CommandRouter(model, session, capabilities=lambda: capabilities or {})
    intents = []
    for name in (
        "session.reset",
        "session.load",
        "session.shutdown",
        "dialog.open_config",
        "dialog.open_phantoms",
        "dialog.about",
        "engine.run",
        "engine.cancel",
        "engine.test_geometry",
        "engine.auto_geometry",
        "hardware.auto_focus",
        "hardware.auto_light",
    ):
        router.register(name, lambda intent: intents.append(intent) or intent.name)
    return model, session, router, intents


def test_run_test_hands_snapshot_to_engine():
    model, _, router, intents = _router()
    model.set(Field.WINDOW, 321)
    assert router.dispatch(CommandName.RUN_TEST) == "engine.run"
    snapshot = intents[-1].payload["snapshot"]
    assert snapshot[Field.WINDOW] == 321
    model.set(Field.WINDOW, 1)
    assert snapshot[Field.WINDOW] == 321


def test_invalid_snapshot_is_rejected_before_the_engine():
    model, session, router, intents = _router()
    model.set(Field.SLICE_THICKNESS, 0)
    with pytest.raises(InvalidConfiguration) as excinfo:
        router.dispatch(CommandName.RUN_TEST)
    assert "slice_thickness must be > 0" in excinfo.value.reasons
    assert intents == []
    assert not session.running


def test_validate_snapshot_reports_non_finite_angle_rows():
    model, _, _, _ = _router()
    bad_row = (ProjectionAngle(angle_deg=float("nan")),)
    assert model.set(Field.ANGLE_TABLE, bad_row) is False
    snapshot = Snapshot(MappingProxyType({**model.snapshot().values, Field.ANGLE_TABLE: bad_row}))
    reasons = validate_snapshot(snapshot, model)
    assert reasons == ["angle_table row 0 is not finite"]


def test_idle_only_commands_are_busy_while_running():
    _, session, router, intents = _router()
    session.begin("run-001")
    for name in (CommandName.NEW, CommandName.CONFIGURE, CommandName.RUN_TEST, CommandName.AUTO_FOCUS):
        with pytest.raises(SessionBusy):
            router.dispatch(name)
    assert intents == []
    assert router.dispatch(CommandName.CANCEL_RUN) == "engine.cancel"
    assert "snapshot" not in intents[-1].payload


def test_unavailable_commands_raise():
    _, _, router, _ = _router(capabilities={"auto_focus": False})
    with pytest.raises(CommandUnavailable):
        router.dispatch(CommandName.AUTO_FOCUS)
    with pytest.raises(CommandUnavailable):
        router.dispatch(CommandName.AUTO_ALL)
    with pytest.raises(CommandUnavailable):
        router.dispatch(CommandName.CANCEL_RUN)
    bare = CommandRouter(ValueModel.from_config(ConsoleConfig()), Session())
    with pytest.raises(CommandUnavailable):
        bare.dispatch("about")


def test_auto_all_runs_focus_then_light():
    _, _, router, intents = _router()
    assert router.dispatch(CommandName.AUTO_ALL) == ["hardware.auto_focus", "hardware.auto_light"]
    assert [intent.name for intent in intents] == ["hardware.auto_focus", "hardware.auto_light"]


def test_reset_commands_restore_fields_even_while_running():
    model, session, router, intents = _router()
    model.set(Field.SCAN_VERT_ENABLE, True)
    model.set(Field.SCAN_VERT, 42)
    session.begin("run-001")
    assert router.dispatch("reset_scan_vert") is True
    assert model.get(Field.SCAN_VERT) == 0
    assert model.get(Field.SCAN_VERT_ENABLE) is True
    assert intents == []


def test_quit_asks_for_confirmation_only_while_running():
    _, session, router, intents = _router()
    asked = []

    def refuse():
        asked.append(True)
        return False

    assert router.dispatch(CommandName.QUIT, confirm=refuse) == "session.shutdown"
    assert asked == []
    session.begin("run-001")
    assert router.dispatch(CommandName.QUIT, confirm=refuse) is None
    assert asked == [True]
    assert router.dispatch(CommandName.QUIT) is None
    assert router.dispatch(CommandName.QUIT, confirm=lambda: True) == "session.shutdown"
    assert [intent.name for intent in intents] == ["session.shutdown", "session.shutdown"]


def test_phantom_intents_carry_their_list_kind():
    _, _, router, _ = _router()
    assert router.intent_for(CommandName.RES_LIST).payload == {"kind": "resolution"}
    assert router.intent_for(CommandName.CONT_LIST).payload == {"kind": "contrast"}
    assert router.intent_for(CommandName.OPEN, path="a.yaml").payload == {"path": "a.yaml"}
    assert router.intent_for(CommandName.RESET_NOISE_MAX).name == "model.reset"
