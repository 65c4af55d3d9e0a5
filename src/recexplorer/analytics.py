"""
Recording analytics (plays, downloads, last access) for meetings on the
visible page, fetched through the bounded worker pool.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from recexplorer.models import UnifiedRecording
from recexplorer.pool import WorkUnit, run_bounded
from recexplorer.zoom_client import ZoomClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeetingAnalytics:
    meeting_id: str
    plays: int = 0
    downloads: int = 0
    last_access_date: str = ""


def _count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def summarize_analytics(meeting_id: str, payload: Mapping[str, Any]) -> MeetingAnalytics:
    """Fold daily ``analytics_summary`` rows into totals.

    The last access date is the latest day with any view or download.
    """
    rows = payload.get("analytics_summary")
    plays = downloads = 0
    last_access = ""
    for row in rows if isinstance(rows, list) else []:
        if not isinstance(row, dict):
            continue
        day = str(row.get("date") or "")[:10]
        views = _count(row.get("views_total_count"))
        dls = _count(row.get("downloads_total_count"))
        plays += views
        downloads += dls
        if day and (views or dls) and day > last_access:
            last_access = day
    return MeetingAnalytics(
        meeting_id=meeting_id, plays=plays, downloads=downloads, last_access_date=last_access
    )


def fetch_meeting_analytics(
    client: ZoomClient,
    records: Iterable[UnifiedRecording],
    from_date: str | None,
    to_date: str | None,
    *,
    concurrency: int = 4,
    known: Mapping[str, MeetingAnalytics] | None = None,
    cancel: threading.Event | None = None,
) -> dict[str, MeetingAnalytics]:
    """Look up analytics for each distinct meeting UUID not already in ``known``.

    A failed lookup yields zeroed stats so callers never wait on a missing entry.
    """
    known = known or {}
    meeting_ids: list[str] = []
    for record in records:
        uuid = record.meeting.uuid if record.meeting else ""
        if uuid and uuid not in known and uuid not in meeting_ids:
            meeting_ids.append(uuid)

    stats: dict[str, MeetingAnalytics] = dict(known)
    if not meeting_ids:
        return stats

    def _task(unit: WorkUnit) -> MeetingAnalytics:
        payload = client.get_meeting_analytics_summary(unit.subject_id, from_date, to_date)
        return summarize_analytics(unit.subject_id, payload)

    units = [WorkUnit(subject_id=mid, subject_label="analytics") for mid in meeting_ids]
    outcome = run_bounded(units, concurrency, _task, cancel=cancel)
    for result in outcome.results:
        mid = result.unit.subject_id
        stats[mid] = result.value if result.value is not None else MeetingAnalytics(mid)
    if outcome.errors:
        logger.info("Analytics unavailable for %d meeting(s)", outcome.error_count)
    return stats
