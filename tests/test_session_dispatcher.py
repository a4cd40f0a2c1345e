"""Tests for response dispatch and its completion contract."""

from pathlib import Path

from conftest import RecordingEditor

from evalbridge.protocol.types import SuccessEvent
from evalbridge.session.contracts import ProgressState
from evalbridge.session.dispatcher import DiagnosticSurface, ResponseDispatcher
from evalbridge.session.stager import PayloadStager
from evalbridge.session.tracker import RequestTracker, TrackedRequest
from evalbridge.utils.exceptions import ConnectionClosed


def _setup(tmp_path: Path, *, show_diagnostics: bool = True):
    tracker = RequestTracker()
    stager = PayloadStager(tmp_path)
    editor = RecordingEditor()
    surface = DiagnosticSurface("*errors*")
    dispatcher = ResponseDispatcher(tracker, stager, editor, surface, show_diagnostics=show_diagnostics)
    return tracker, stager, editor, surface, dispatcher


def _track(tracker: RequestTracker, request_id: str, calls: list, *, origin="buf-1", staged=None):
    tracker.register(
        TrackedRequest(
            request_id=request_id,
            namespace=("Main",),
            code="1+1",
            origin=origin,
            on_success=lambda r: calls.append(("ok", r)),
            on_failure=lambda r: calls.append(("fail", r)),
            staged=staged,
        )
    )


def test_success_runs_callback_once_and_clears_entry(tmp_path):
    tracker, _, editor, _, dispatcher = _setup(tmp_path)
    calls: list = []
    _track(tracker, "aaaa0001", calls)
    assert dispatcher.feed(b'(success "aaaa0001" "2")\n') == 1
    assert dispatcher.feed(b'(success "aaaa0001" "2")\n') == 0
    assert len(calls) == 1
    kind, result = calls[0]
    assert kind == "ok"
    assert result.value == "2"
    assert len(tracker) == 0
    assert editor.progress == [("buf-1", ProgressState.STOPPED)]


def test_unknown_id_is_ignored_without_side_effects(tmp_path):
    tracker, _, editor, surface, dispatcher = _setup(tmp_path)
    calls: list = []
    _track(tracker, "aaaa0001", calls)
    assert dispatcher.dispatch(SuccessEvent(request_id="ffff9999")) is False
    dispatcher.feed('(failure "ffff9999" "boom" ())')
    assert calls == []
    assert "aaaa0001" in tracker
    assert editor.progress == []
    assert surface.text == ""


def test_failure_populates_surface_before_failure_callback(tmp_path):
    tracker, _, editor, surface, dispatcher = _setup(tmp_path)
    seen: list[str] = []
    tracker.register(
        TrackedRequest(
            request_id="aaaa0001",
            namespace=("Main",),
            code="z",
            origin="buf-1",
            on_failure=lambda report: seen.append(surface.text),
        )
    )
    dispatcher.feed('(failure "aaaa0001" "UndefVarError: z not defined" ("at line 3"))')
    assert seen == ["UndefVarError: z not defined\nat line 3"]
    assert editor.diagnostics == ["UndefVarError: z not defined\nat line 3"]
    assert surface.read_only is True
    assert editor.notifications == []


def test_failure_without_diagnostics_uses_notification(tmp_path):
    tracker, _, editor, surface, dispatcher = _setup(tmp_path, show_diagnostics=False)
    calls: list = []
    _track(tracker, "aaaa0001", calls)
    dispatcher.feed('(failure "aaaa0001" "boom" ("f1" "f2"))')
    assert editor.notifications == [("buf-1", "boom")]
    assert surface.text == ""
    kind, report = calls[0]
    assert kind == "fail"
    assert report.message == "boom"
    assert report.stack_frames == ["f1", "f2"]


def test_staged_file_is_released_on_success_and_failure(tmp_path):
    tracker, stager, _, _, dispatcher = _setup(tmp_path)
    calls: list = []
    ok_payload = stager.stage("a = 1")
    bad_payload = stager.stage("b = ")
    _track(tracker, "aaaa0001", calls, staged=ok_payload)
    _track(tracker, "aaaa0002", calls, staged=bad_payload)
    assert ok_payload.path.exists() and bad_payload.path.exists()
    dispatcher.feed('(success "aaaa0001")(failure "aaaa0002" "syntax" ())')
    assert not ok_payload.path.exists()
    assert not bad_payload.path.exists()
    assert [k for k, _ in calls] == ["ok", "fail"]


def test_malformed_event_does_not_disturb_other_requests(tmp_path):
    tracker, _, _, _, dispatcher = _setup(tmp_path)
    calls: list = []
    _track(tracker, "aaaa0001", calls)
    _track(tracker, "aaaa0002", calls)
    dispatched = dispatcher.feed('(explode "aaaa0001")\n(success "aaaa0002")\n')
    assert dispatched == 1
    assert "aaaa0001" in tracker
    assert [r.request_id for _, r in calls] == ["aaaa0002"]


def test_raising_callback_still_cleans_up(tmp_path):
    tracker, stager, editor, _, dispatcher = _setup(tmp_path)
    payload = stager.stage("x")

    def _boom(result):
        raise RuntimeError("callback bug")

    tracker.register(
        TrackedRequest(request_id="aaaa0001", namespace=("Main",), code="x", on_success=_boom, staged=payload)
    )
    dispatcher.feed('(success "aaaa0001") (success "aaaa0001")')
    assert not payload.path.exists()
    assert len(tracker) == 0
    assert editor.progress == [(None, ProgressState.STOPPED)]


def test_multibyte_utf8_split_across_chunks(tmp_path):
    tracker, _, _, _, dispatcher = _setup(tmp_path)
    calls: list = []
    _track(tracker, "aaaa0001", calls)
    raw = '(success "aaaa0001" "λ")'.encode("utf-8")
    split = raw.index("λ".encode("utf-8")) + 1
    assert dispatcher.feed(raw[:split]) == 0
    assert dispatcher.feed(raw[split:]) == 1
    assert calls[0][1].value == "λ"


def test_fail_all_synthesizes_connection_closed(tmp_path):
    tracker, stager, editor, _, dispatcher = _setup(tmp_path)
    calls: list = []
    payload = stager.stage("x")
    _track(tracker, "aaaa0001", calls, staged=payload)
    _track(tracker, "aaaa0002", calls, origin="buf-2")
    count = dispatcher.fail_all(tracker.drain(), lambda rid: ConnectionClosed("h:1", rid))
    assert count == 2
    assert len(tracker) == 0
    assert not payload.path.exists()
    assert all(kind == "fail" for kind, _ in calls)
    assert all(isinstance(report.error, ConnectionClosed) for _, report in calls)
    assert [ctx for ctx, _ in editor.notifications] == ["buf-1", "buf-2"]
    assert editor.progress == [("buf-1", ProgressState.STOPPED), ("buf-2", ProgressState.STOPPED)]


def test_diagnostic_surface_replaces_contents():
    surface = DiagnosticSurface("*errors*")
    surface.show("first")
    surface.show("second")
    assert surface.text == "second"
    assert surface.revision == 2
    surface.clear()
    assert surface.text == ""


def test_truncated_frame_does_not_block_later_responses(tmp_path):
    tracker, _, _, _, dispatcher = _setup(tmp_path)
    calls: list = []
    _track(tracker, "aaaa0002", calls)
    assert dispatcher.feed('(success "aaaa0001"\n') == 0
    assert dispatcher.feed('(success "aaaa0002")\n') == 1
    assert [kind for kind, _ in calls] == ["ok"]
