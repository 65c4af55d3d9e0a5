"""
Parse/validate step for each upstream schema.

Each ``parse_*`` function accepts one raw JSON object from its endpoint and
returns a :class:`UnifiedRecording`. Absent or mistyped fields fall back to
fixed defaults instead of raising, so one odd record cannot sink a fetch.
Entries that are not JSON objects at all are dropped by :func:`parse_items`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from recexplorer.models import (
    ContactCenterDetails,
    MeetingDetails,
    Owner,
    RecordingFile,
    Site,
    UnifiedRecording,
)

logger = logging.getLogger(__name__)


def _str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def _int(value: Any) -> int:
    """Numbers only; bools, strings and NaN count as zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value:
        return 0
    return int(value)


def _optional_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_recording_file(raw: dict[str, Any]) -> RecordingFile:
    return RecordingFile(
        id=_str(raw.get("id")),
        file_type=_str(raw.get("file_type")),
        file_extension=_str(raw.get("file_extension")),
        file_size=_int(raw.get("file_size")),
        recording_type=_str(raw.get("recording_type")),
        recording_start=_str(raw.get("recording_start")),
        recording_end=_str(raw.get("recording_end")),
        play_url=_str(raw.get("play_url")),
        download_url=_str(raw.get("download_url")),
        status=_str(raw.get("status")),
    )


def parse_phone_recording(raw: dict[str, Any]) -> UnifiedRecording:
    owner = _dict(raw.get("owner"))
    site = _dict(raw.get("site"))
    return UnifiedRecording(
        source="phone",
        id=_str(raw.get("id")),
        date_time=_str(raw.get("date_time")),
        end_time=_str(raw.get("end_time")) or None,
        duration=_int(raw.get("duration")),
        caller_name=_str(raw.get("caller_name")),
        caller_number=_str(raw.get("caller_number")),
        callee_name=_str(raw.get("callee_name")),
        callee_number=_str(raw.get("callee_number")),
        owner=Owner(
            type=_str(owner.get("type")),
            id=_str(owner.get("id")),
            name=_str(owner.get("name")),
        ),
        site=Site(id=_str(site.get("id")), name=_str(site.get("name"))),
        direction=_str(raw.get("direction")),
        recording_type=_str(raw.get("recording_type")),
        download_url=_str(raw.get("download_url")),
    )


def parse_meeting_recording(raw: dict[str, Any], owner_email: str = "") -> UnifiedRecording:
    """Normalize one meeting from ``/users/{id}/recordings``.

    ``owner_email`` is the email of the user whose recordings listing returned
    the meeting; it also stands in for the host email when Zoom omits it.
    """
    files_raw = raw.get("recording_files")
    files = tuple(
        parse_recording_file(f)
        for f in (files_raw if isinstance(files_raw, list) else [])
        if isinstance(f, dict)
    )

    starts = [ts for ts in (_parse_timestamp(f.recording_start) for f in files) if ts]
    first_start = min(starts).astimezone(UTC).isoformat().replace("+00:00", "Z") if starts else ""

    file_types: list[str] = []
    for f in files:
        if f.file_type and f.file_type not in file_types:
            file_types.append(f.file_type)

    topic = _str(raw.get("topic"))
    host_email = _str(raw.get("host_email")) or owner_email
    host_name = (
        _str(raw.get("host_name")) or _str(raw.get("owner_name")) or host_email or topic or "Unknown"
    )
    uuid = _str(raw.get("uuid"))
    numeric_id = _str(raw.get("id"))

    details = MeetingDetails(
        uuid=uuid,
        meeting_id=numeric_id,
        topic=topic,
        host_id=_str(raw.get("host_id")),
        host_name=host_name,
        host_email=host_email,
        owner_email=owner_email,
        recording_files=files,
        file_types=tuple(file_types),
        primary_file_type=files[0].file_type or None if files else None,
        primary_file_extension=files[0].file_extension or None if files else None,
        total_size=sum(f.file_size for f in files),
        auto_delete=_optional_bool(raw.get("auto_delete")),
        auto_delete_date=_str(raw.get("auto_delete_date")) or None,
    )
    return UnifiedRecording(
        source="meetings",
        id=uuid or numeric_id,
        date_time=first_start or _str(raw.get("start_time")),
        # Zoom reports meeting duration in minutes
        duration=_int(raw.get("duration")) * 60,
        caller_name=topic,
        callee_name=host_email or host_name,
        owner=Owner(type="user", id=details.host_id, name=host_name),
        site=Site(id="", name="Meeting"),
        direction="meeting",
        recording_type="Meeting",
        meeting=details,
    )


def parse_contact_center_recording(raw: dict[str, Any]) -> UnifiedRecording:
    consumers = raw.get("consumers")
    first_consumer = _dict(consumers[0]) if isinstance(consumers, list) and consumers else {}
    caller_name = _str(first_consumer.get("consumer_name"))
    caller_number = _str(first_consumer.get("consumer_number"))
    agent_name = _str(raw.get("display_name"))
    agent_email = _str(raw.get("user_email"))
    queue_id = _str(raw.get("cc_queue_id"))
    queue_name = _str(raw.get("queue_name"))
    start = _str(raw.get("recording_start_time"))
    end = _str(raw.get("recording_end_time"))

    details = ContactCenterDetails(
        queue_id=queue_id,
        queue_name=queue_name,
        flow_name=_str(raw.get("flow_name")),
        channel=_str(raw.get("channel")),
        consumer_name=caller_name,
        consumer_number=caller_number,
        agent_name=agent_name,
        agent_email=agent_email,
        transcript_url=_str(raw.get("transcript_url")),
        playback_url=_str(raw.get("playback_url")),
    )
    return UnifiedRecording(
        source="cc",
        id=_str(raw.get("recording_id")),
        date_time=start or end,
        end_time=end or None,
        duration=_int(raw.get("recording_duration")),
        caller_name=caller_name,
        caller_number=caller_number,
        callee_name=agent_name or agent_email,
        owner=Owner(
            type=_str(raw.get("owner_type")) or "queue",
            id=_str(raw.get("owner_id")) or queue_id,
            name=agent_name or agent_email or "Agent",
        ),
        site=Site(id=queue_id, name=queue_name or "CC"),
        direction=_str(raw.get("direction")) or "cc",
        recording_type=_str(raw.get("recording_type")) or "Contact Center",
        download_url=_str(raw.get("download_url")),
        contact_center=details,
    )


def parse_items(
    items: Iterable[Any], parser: Callable[[dict[str, Any]], UnifiedRecording]
) -> list[UnifiedRecording]:
    """Parse every JSON object in ``items``; skip anything else."""
    parsed: list[UnifiedRecording] = []
    for item in items:
        if not isinstance(item, dict):
            logger.debug("Skipping non-object entry of type %s", type(item).__name__)
            continue
        parsed.append(parser(item))
    return parsed
