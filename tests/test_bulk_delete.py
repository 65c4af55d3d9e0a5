import dataclasses

import pytest

from recexplorer.bulk_delete import BulkDeleteOrchestrator, DeleteState, zoom_removers
from recexplorer.exceptions import ValidationError
from recexplorer.models import record_key
from recexplorer.normalize import (
    parse_contact_center_recording,
    parse_meeting_recording,
    parse_phone_recording,
)
from recexplorer.selection import SelectionState

from .stub_client import StubZoomClient


def _phones(n):
    return [parse_phone_recording({"id": f"r{i}"}) for i in range(n)]


def _select_all(records):
    return SelectionState(record_key(r) for r in records)


def test_one_failure_does_not_stop_the_batch():
    records = _phones(5)
    client = StubZoomClient(failing_deletes={"r2"})
    selection = _select_all(records)
    refreshed = []
    progress = []
    orchestrator = BulkDeleteOrchestrator(
        zoom_removers(client),
        selection,
        refresh=lambda: refreshed.append(True),
        on_progress=lambda p: progress.append((p.done, p.total)),
    )

    orchestrator.open(records)
    summary = orchestrator.confirm()

    assert summary.succeeded == 4
    assert summary.failed == 1
    assert summary.failures[0].key == "p||r2"
    assert summary.message == "Delete complete: 4 succeeded, 1 failed."
    assert orchestrator.progress.done == 5
    assert progress[-1] == (5, 5)
    assert [c[1] for c in client.calls] == ["r0", "r1", "r2", "r3", "r4"]
    assert len(selection) == 0
    assert refreshed == [True]
    assert orchestrator.state is DeleteState.IDLE


def test_pending_list_is_a_snapshot():
    records = _phones(3)
    selection = _select_all(records)
    client = StubZoomClient()
    orchestrator = BulkDeleteOrchestrator(zoom_removers(client), selection)

    source = list(records)
    snapshot = orchestrator.open(source)
    source.clear()
    selection.clear()
    summary = orchestrator.confirm()

    assert len(snapshot) == 3
    assert summary.succeeded == 3


def test_demo_mode_removes_locally_without_api():
    records = _phones(3)
    removed = []
    orchestrator = BulkDeleteOrchestrator(
        {},
        _select_all(records),
        demo_mode=True,
        on_demo_removed=removed.extend,
        refresh=lambda: pytest.fail("refresh must not run in demo mode"),
    )

    orchestrator.open(records[:2])
    summary = orchestrator.confirm()

    assert removed == records[:2]
    assert summary.demo is True
    assert summary.message == "Demo delete: removed 2 record(s) from the table."


def test_routes_each_source_to_its_endpoint():
    meeting = parse_meeting_recording({"uuid": "/abc==", "id": 1})
    cc = parse_contact_center_recording({"recording_id": "cc-1"})
    phone = parse_phone_recording({"id": "p-1"})
    client = StubZoomClient()
    orchestrator = BulkDeleteOrchestrator(zoom_removers(client), SelectionState())

    orchestrator.open([phone, meeting, cc])
    orchestrator.confirm()

    assert client.deleted == [
        ("delete_phone", "p-1"),
        ("trash_meeting", "/abc=="),
        ("delete_cc", "cc-1"),
    ]


def test_missing_identifier_is_a_failure_not_a_crash():
    meeting = dataclasses.replace(parse_meeting_recording({"id": 5}), meeting=None)
    no_id = parse_phone_recording({})
    orchestrator = BulkDeleteOrchestrator(zoom_removers(StubZoomClient()), SelectionState())

    orchestrator.open([meeting, no_id])
    summary = orchestrator.confirm()

    assert summary.failed == 2
    assert all("VALIDATION_ERROR" in f.message for f in summary.failures)


def test_empty_selection_opens_nothing():
    orchestrator = BulkDeleteOrchestrator({}, SelectionState())
    assert orchestrator.open([]) == ()
    assert orchestrator.state is DeleteState.IDLE


def test_cancel_returns_to_idle_and_confirm_requires_review():
    orchestrator = BulkDeleteOrchestrator({}, SelectionState())
    orchestrator.open(_phones(1))
    orchestrator.cancel()

    assert orchestrator.state is DeleteState.IDLE
    with pytest.raises(ValidationError):
        orchestrator.confirm()


def test_discard_progress_clears_last_batch():
    orchestrator = BulkDeleteOrchestrator({}, SelectionState(), demo_mode=True)
    orchestrator.open(_phones(1))
    orchestrator.confirm()
    assert orchestrator.progress.done == 1

    orchestrator.discard_progress()
    assert orchestrator.progress is None


def test_record_without_id_fails_alone():
    records = _phones(5)
    records[2] = dataclasses.replace(parse_phone_recording({}), index=2)
    client = StubZoomClient()
    selection = _select_all(records)
    orchestrator = BulkDeleteOrchestrator(zoom_removers(client), selection)

    orchestrator.open(records)
    summary = orchestrator.confirm()

    assert orchestrator.progress.done == 5
    assert summary.failed == 1
    assert summary.succeeded == 4
    assert summary.failures[0].key == "p||2"
    assert len(selection) == 0
