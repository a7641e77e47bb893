import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import threading

import pytest

from recon_console.graphical_app.app.dialogs import RunProgressModel
from recon_console.graphical_app.app.dispatcher import UiDispatcher
from recon_console.graphical_app.app.errors import SessionBusy
from recon_console.graphical_app.app.interfaces import EngineResult, RunOutcome
from recon_console.graphical_app.app.session import Session, SessionPhase


def test_session_runs_one_reconstruction_at_a_time():
    session = Session()
    changes = []
    session.subscribe(lambda s: changes.append(s.phase))
    session.begin("run-001")
    assert session.running
    assert session.progress.visible and not session.progress.closable and session.progress.stay_on_top
    with pytest.raises(SessionBusy):
        session.begin("run-002")
    assert session.run_id == "run-001"
    assert changes == [SessionPhase.RUNNING]


def test_progress_is_clamped_and_shown_in_status():
    session = Session()
    session.report_progress(0.5)
    assert session.progress.value == 0.0
    session.begin("run-001")
    session.report_progress(0.3)
    assert session.status_text == "running (30%)"
    session.report_progress(1.7)
    assert session.progress.gauge == 100
    session.report_progress(-2)
    assert session.progress.value == 0.0


def test_non_finite_progress_is_ignored():
    session = Session()
    session.begin("run-001")
    session.report_progress(0.4)
    seen = []
    session.subscribe(lambda s: seen.append(s.progress.value))
    session.report_progress(float("nan"))
    session.report_progress(float("inf"))
    assert seen == []
    assert session.progress.value == 0.4
    assert session.status_text == "running (40%)"


def test_cancel_is_cooperative():
    session = Session()
    assert session.request_cancel() is False
    session.begin("run-001")
    assert session.request_cancel() is True
    assert session.request_cancel() is False
    assert session.running
    assert session.status_text == "cancelling"
    session.finish(EngineResult(RunOutcome.CANCELLED))
    assert session.phase is SessionPhase.IDLE
    assert session.status_text == "cancelled"
    assert session.progress.visible is False
    assert session.cancel_requested is False


def test_failed_result_reports_reason():
    session = Session()
    session.begin("run-001")
    session.finish(EngineResult(RunOutcome.FAILED, reason="detector offline"))
    assert session.status_text == "failed: detector offline"
    session.finish(EngineResult(RunOutcome.COMPLETED))
    assert session.last_result.outcome is RunOutcome.FAILED


def test_run_progress_gauge_rounds_to_percent():
    assert RunProgressModel(value=0.42).gauge == 42
    assert RunProgressModel().visible is False


def test_dispatcher_runs_posted_work_on_drain():
    dispatcher = UiDispatcher()
    seen = []
    worker = threading.Thread(target=lambda: [dispatcher.post(seen.append, idx) for idx in range(3)])
    worker.start()
    worker.join()
    assert seen == []
    assert dispatcher.pending()
    assert dispatcher.drain(limit=2) == 2
    assert seen == [0, 1]
    assert dispatcher.drain() == 1
    assert seen == [0, 1, 2]
    assert dispatcher.drain() == 0


def test_dispatcher_tracks_ui_thread():
    dispatcher = UiDispatcher()
    assert dispatcher.on_ui_thread()
    result = {}
    worker = threading.Thread(target=lambda: result.update(on_ui=dispatcher.on_ui_thread()))
    worker.start()
    worker.join()
    assert result["on_ui"] is False
