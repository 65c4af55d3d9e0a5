"""
Sequential bulk delete with progress reporting.

Lifecycle: IDLE -> CONFIRMING (pending list captured) -> RUNNING (one
record at a time) -> RECONCILING (local removal or re-fetch) -> IDLE.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from recexplorer.exceptions import RecExplorerError, ValidationError
from recexplorer.models import UnifiedRecording, record_key
from recexplorer.selection import SelectionState
from recexplorer.zoom_client import ZoomClient

logger = logging.getLogger(__name__)

Remover = Callable[[UnifiedRecording], Any]


class DeleteState(Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    RUNNING = "running"
    RECONCILING = "reconciling"


@dataclass
class DeleteProgress:
    total: int
    done: int = 0


@dataclass(frozen=True)
class DeleteFailure:
    key: str
    source: str
    message: str


@dataclass
class DeleteSummary:
    total: int
    succeeded: int = 0
    failed: int = 0
    failures: list[DeleteFailure] = field(default_factory=list)
    removed: list[UnifiedRecording] = field(default_factory=list)
    demo: bool = False

    @property
    def message(self) -> str:
        if self.demo:
            return f"Demo delete: removed {self.succeeded} record(s) from the table."
        return f"Delete complete: {self.succeeded} succeeded, {self.failed} failed."

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "demo": self.demo,
            "failures": [
                {"key": f.key, "source": f.source, "message": f.message} for f in self.failures
            ],
        }


def zoom_removers(client: ZoomClient) -> dict[str, Remover]:
    """Per-source removal operations backed by the Zoom API."""

    def _phone(record: UnifiedRecording) -> Any:
        if not record.id:
            raise ValidationError("Missing recording id for phone recording")
        return client.delete_phone_recording(record.id)

    def _meeting(record: UnifiedRecording) -> Any:
        if record.meeting is None or not record.meeting.uuid:
            raise ValidationError("Missing meeting UUID for meeting recording")
        return client.trash_meeting_recordings(record.meeting.uuid)

    def _contact_center(record: UnifiedRecording) -> Any:
        if not record.id:
            raise ValidationError("Missing recording id for contact center recording")
        return client.delete_contact_center_recording(record.id)

    return {"phone": _phone, "meetings": _meeting, "cc": _contact_center}


class BulkDeleteOrchestrator:
    """Runs one delete batch at a time against a captured snapshot.

    ``refresh`` is called after a live batch to re-aggregate from the provider;
    ``on_demo_removed`` receives the records removed in demo mode, where there
    is no backing store to re-fetch from. ``on_progress`` is called after every
    item, successful or not.
    """

    def __init__(
        self,
        removers: Mapping[str, Remover],
        selection: SelectionState,
        *,
        demo_mode: bool = False,
        refresh: Callable[[], Any] | None = None,
        on_demo_removed: Callable[[list[UnifiedRecording]], Any] | None = None,
        on_progress: Callable[[DeleteProgress], Any] | None = None,
        demo_delay: float = 0.0,
        progress_linger: float = 0.0,
    ):
        self.removers = dict(removers)
        self.selection = selection
        self.demo_mode = demo_mode
        self.refresh = refresh
        self.on_demo_removed = on_demo_removed
        self.on_progress = on_progress
        self.demo_delay = demo_delay
        self.progress_linger = progress_linger

        self.state = DeleteState.IDLE
        self.pending: tuple[UnifiedRecording, ...] = ()
        self.progress: DeleteProgress | None = None
        self._linger_timer: threading.Timer | None = None

    def open(self, records: Iterable[UnifiedRecording]) -> tuple[UnifiedRecording, ...]:
        """Capture the pending list for review. Returns the snapshot."""
        if self.state in (DeleteState.RUNNING, DeleteState.RECONCILING):
            raise ValidationError("A delete batch is already running")
        snapshot = tuple(records)
        if not snapshot:
            return ()
        self.pending = snapshot
        self.state = DeleteState.CONFIRMING
        return snapshot

    def cancel(self) -> None:
        """Close the review without deleting anything."""
        if self.state is DeleteState.CONFIRMING:
            self.pending = ()
            self.state = DeleteState.IDLE

    def _remove(self, record: UnifiedRecording) -> None:
        if self.demo_mode:
            if self.demo_delay:
                time.sleep(self.demo_delay)
            return
        remover = self.removers.get(record.source)
        if remover is None:
            raise ValidationError(f"No removal operation for source {record.source!r}")
        remover(record)

    def _report(self) -> None:
        if self.on_progress is not None and self.progress is not None:
            self.on_progress(self.progress)

    def confirm(self) -> DeleteSummary:
        """Delete every pending record, strictly one after another."""
        if self.state is not DeleteState.CONFIRMING:
            raise ValidationError("Nothing to delete: open a review first")

        to_delete = self.pending
        summary = DeleteSummary(total=len(to_delete), demo=self.demo_mode)
        self.state = DeleteState.RUNNING
        self._cancel_linger()
        self.progress = DeleteProgress(total=len(to_delete))
        self._report()

        try:
            for position, record in enumerate(to_delete, 1):
                key = record_key(record)
                try:
                    self._remove(record)
                    summary.succeeded += 1
                    summary.removed.append(record)
                except Exception as e:
                    message = f"{e.code}: {e.message}" if isinstance(e, RecExplorerError) else str(e)
                    logger.warning("Failed to delete %s: %s", key, message)
                    summary.failed += 1
                    summary.failures.append(
                        DeleteFailure(key=key, source=record.source, message=message)
                    )
                finally:
                    self.progress = DeleteProgress(total=len(to_delete), done=position)
                    self._report()

            self.state = DeleteState.RECONCILING
            self.selection.clear()
            if self.demo_mode:
                if self.on_demo_removed is not None:
                    self.on_demo_removed(list(summary.removed))
            elif self.refresh is not None:
                self.refresh()
        finally:
            self.state = DeleteState.IDLE
            self.pending = ()
            self._schedule_discard()

        logger.info(summary.message)
        return summary

    def discard_progress(self) -> None:
        self.progress = None

    def _cancel_linger(self) -> None:
        if self._linger_timer is not None:
            self._linger_timer.cancel()
            self._linger_timer = None

    def _schedule_discard(self) -> None:
        if self.progress_linger <= 0:
            return
        self._linger_timer = threading.Timer(self.progress_linger, self.discard_progress)
        self._linger_timer.daemon = True
        self._linger_timer.start()
