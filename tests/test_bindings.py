import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from recon_console.config.schema import ConsoleConfig
from recon_console.graphical_app.app.bindings import BindingTable, Commit, ControlBinding, ControlKind, Direction
from recon_console.graphical_app.app.errors import InvalidSelection
from recon_console.graphical_app.app.values import Field, ValueModel


def _table():
    model = ValueModel.from_config(ConsoleConfig())
    return model, BindingTable(model)


def test_live_slider_publishes_and_echoes_label():
    model, table = _table()
    echoes = []
    table.add_echo_listener(lambda control, text, position: echoes.append((control, text, position)))
    assert table.on_move("window_slider", 1100) is True
    assert model.get(Field.WINDOW) == 1100
    assert table.label("window_slider") == "1100"
    assert echoes[-1] == ("window_slider", "1100", 1100)


def test_scaled_sliders_convert_positions():
    model, table = _table()
    table.on_move("zoom_slider", "25.0")
    assert model.get(Field.ZOOM) == pytest.approx(2.5)
    assert table.label("zoom_slider") == "2.5"
    assert table.position("zoom_slider") == 25
    table.on_move("enhance_slider", 75)
    assert model.get(Field.ENHANCE_RATIO) == pytest.approx(0.75)
    assert table.label("enhance_slider") == "0.75"
    assert table.slider_range("zoom_slider") == (1, 100)
    assert table.slider_range("enhance_slider") == (0, 100)


def test_explicit_entry_commits_on_enter_only():
    model, table = _table()
    table.on_text("distance_entry", "300.5")
    assert model.get(Field.DISTANCE) == 250.0
    assert table.commit("distance_entry") is True
    assert model.get(Field.DISTANCE) == 300.5
    assert table.label("distance_entry") == "300.50"
    assert table.commit("distance_entry") is False


def test_unparseable_entry_is_silently_corrected():
    model, table = _table()
    echoes = []
    table.add_echo_listener(lambda control, text, position: echoes.append(text))
    table.on_text("distance_entry", "far")
    assert table.commit("distance_entry") is False
    assert model.get(Field.DISTANCE) == 250.0
    assert echoes == ["250.00"]
    table.on_text("distance_entry", "-5")
    assert table.commit("distance_entry") is True
    assert table.label("distance_entry") == "0.00"


def test_labels_follow_model_resets():
    model, table = _table()
    table.on_move("scan_vert_slider", 42)
    assert table.label("scan_vert_slider") == "42"
    model.reset(Field.SCAN_VERT)
    assert table.label("scan_vert_slider") == "0"


def test_final_commit_waits_for_release():
    model = ValueModel.from_config(ConsoleConfig())
    table = BindingTable(model, [ControlBinding("level_slider", Field.LEVEL, ControlKind.SLIDER, commit=Commit.FINAL)])
    start = model.get(Field.LEVEL)
    assert table.on_move("level_slider", 10) is False
    assert model.get(Field.LEVEL) == start
    assert table.on_release("level_slider") is True
    assert model.get(Field.LEVEL) == 10


def test_view_only_binding_cannot_publish():
    model = ValueModel.from_config(ConsoleConfig())
    table = BindingTable(model, [ControlBinding("window_readout", Field.WINDOW, ControlKind.SLIDER, direction=Direction.VIEW_ONLY)])
    with pytest.raises(ValueError):
        table.on_move("window_readout", 10)
    model.set(Field.WINDOW, 77)
    assert table.label("window_readout") == "77"


def test_table_rejects_bad_definitions():
    model = ValueModel.from_config(ConsoleConfig())
    duplicate = ControlBinding("x_enhance", Field.X_ENHANCE, ControlKind.CHECKBOX)
    with pytest.raises(ValueError):
        BindingTable(model, [duplicate, duplicate])
    with pytest.raises(ValueError):
        BindingTable(model, [ControlBinding("x_enhance", Field.X_ENHANCE, ControlKind.CHECKBOX, commit=Commit.FINAL)])
    with pytest.raises(KeyError):
        BindingTable(model).binding("missing")


def test_checkbox_and_choice_controls():
    model, table = _table()
    assert table.on_toggle("outlier_enable", 1) is True
    assert model.get(Field.OUTLIER_ENABLE) is True
    assert table.label("outlier_enable") == "on"
    assert table.on_choice("gain_choice", "High") is True
    assert model.get(Field.GAIN_SELECTION) == "High"
    with pytest.raises(InvalidSelection):
        table.on_choice("gain_choice", "Ultra")
    assert table.on_choice("orientation_radio", "Vertical") is True
    assert model.get(Field.ORIENTATION) == "Vertical"


def test_step_moves_one_unit_within_range():
    model, table = _table()
    assert table.step("step_slider", -1) is False
    assert model.get(Field.STEP) == 1
    assert table.step("step_slider", 1) is True
    assert model.get(Field.STEP) == 2
    table.step("zoom_slider", 1)
    assert model.get(Field.ZOOM) == pytest.approx(1.1)
    with pytest.raises(ValueError):
        table.step("vert_flip", 1)


def test_parity_check_reports_missing_and_extra_controls():
    _, table = _table()
    represented = set(table.controls()) - {"noise_max_slider"}
    assert table.parity_check(table.controls()) == []
    issues = table.parity_check(represented | {"bogus"})
    assert issues == ["Missing controls for: noise_max_slider", "Unexpected controls for: bogus"]
    assert set(table.controls(ControlKind.CHECKBOX)) >= {"vert_flip", "abs_enhance"}
