"""
Unified recording model shared by the phone, meetings and contact-center sources.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

SourceLiteral = Literal["phone", "meetings", "cc"]
SOURCES: tuple[SourceLiteral, ...] = ("phone", "meetings", "cc")

_KEY_TAGS: dict[str, str] = {"phone": "p", "meetings": "m", "cc": "c"}


@dataclass(frozen=True)
class Owner:
    """Structural owner used for grouping (user, call queue, ...)."""

    type: str = ""
    id: str = ""
    name: str = ""


@dataclass(frozen=True)
class Site:
    id: str = ""
    name: str = ""


@dataclass(frozen=True)
class RecordingFile:
    id: str = ""
    file_type: str = ""
    file_extension: str = ""
    file_size: int = 0
    recording_type: str = ""
    recording_start: str = ""
    recording_end: str = ""
    play_url: str = ""
    download_url: str = ""
    status: str = ""


@dataclass(frozen=True)
class MeetingDetails:
    """Meetings-only payload."""

    uuid: str = ""
    meeting_id: str = ""
    topic: str = ""
    host_id: str = ""
    host_name: str = ""
    host_email: str = ""
    owner_email: str = ""
    recording_files: tuple[RecordingFile, ...] = ()
    file_types: tuple[str, ...] = ()
    primary_file_type: str | None = None
    primary_file_extension: str | None = None
    total_size: int = 0
    auto_delete: bool | None = None
    auto_delete_date: str | None = None

    @property
    def files_count(self) -> int:
        return len(self.recording_files)


@dataclass(frozen=True)
class ContactCenterDetails:
    """Contact-center-only payload."""

    queue_id: str = ""
    queue_name: str = ""
    flow_name: str = ""
    channel: str = ""
    consumer_name: str = ""
    consumer_number: str = ""
    agent_name: str = ""
    agent_email: str = ""
    transcript_url: str = ""
    playback_url: str = ""


@dataclass(frozen=True)
class UnifiedRecording:
    """One recording, whatever system it came from.

    ``id`` is only unique within one fetched result set; use :func:`record_key`
    for identity in selection state. ``index`` is the record's position in the
    fetched dataset and serves as the identifier of last resort.
    """

    source: SourceLiteral
    id: str = ""
    date_time: str = ""
    end_time: str | None = None
    duration: int = 0
    caller_name: str = ""
    caller_number: str = ""
    callee_name: str = ""
    callee_number: str = ""
    owner: Owner = field(default_factory=Owner)
    site: Site = field(default_factory=Site)
    direction: str = ""
    recording_type: str = ""
    download_url: str = ""
    meeting: MeetingDetails | None = None
    contact_center: ContactCenterDetails | None = None
    index: int = 0

    @property
    def owner_display_name(self) -> str:
        return self.owner.name or "Unknown"

    @property
    def topic(self) -> str:
        return self.meeting.topic if self.meeting else ""

    @property
    def auto_delete(self) -> bool | None:
        return self.meeting.auto_delete if self.meeting else None

    def search_haystack(self) -> str:
        """Lower-cased text that free-text queries are matched against."""
        parts = [
            self.caller_name,
            self.caller_number,
            self.callee_name,
            self.callee_number,
            self.owner.name,
            self.topic,
        ]
        if self.meeting:
            parts.extend([self.meeting.host_email, self.meeting.host_name, self.meeting.host_id])
            parts.append(self.meeting.owner_email)
        if self.contact_center:
            parts.extend([self.contact_center.agent_email, self.contact_center.queue_name])
        return " ".join(str(p) for p in parts if p).lower()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["key"] = record_key(self)
        if self.meeting is not None:
            data["meeting"]["files_count"] = self.meeting.files_count
        return data


def record_key(record: UnifiedRecording) -> str:
    """Selection key ``{tag}|{secondary-id}|{primary-id-or-index}``."""
    tag = _KEY_TAGS.get(record.source, record.source)
    secondary = record.meeting.uuid if record.meeting else ""
    primary = record.id or str(record.index)
    return f"{tag}|{secondary}|{primary}"
