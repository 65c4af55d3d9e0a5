"""
Source adapters: how each recording system is fetched and normalized.

Key Zoom API behaviors to remember:

1. Phone and Contact Center recordings are account-wide collections behind a
   single ``next_page_token`` cursor, so they are fetched with one sequential
   cursor loop. Any failure aborts that source's fetch.
2. Cloud meeting recordings are listed per user. The meetings adapter first
   enumerates active users, then fans out one work unit per user through the
   bounded worker pool. A failing user is recorded as a unit error and never
   aborts the other users.
3. ``/users/{userId}/recordings`` rejects windows longer than ~30 days, so each
   user's window is split into calendar months, and pagination tokens are never
   reused across months.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Literal

from recexplorer.exceptions import ValidationError
from recexplorer.models import UnifiedRecording
from recexplorer.normalize import (
    parse_contact_center_recording,
    parse_items,
    parse_meeting_recording,
    parse_phone_recording,
)
from recexplorer.pagination import Page, fetch_all_pages
from recexplorer.pool import PoolOutcome, UnitError, WorkResult, WorkUnit, run_bounded
from recexplorer.zoom_client import ZoomClient

logger = logging.getLogger(__name__)

MeetingsView = Literal["records", "users", "user-recordings"]
MEETINGS_VIEWS: tuple[MeetingsView, ...] = ("records", "users", "user-recordings")


@dataclass
class SourceResult:
    """Normalized recordings from one source for one date window."""

    source: str
    from_date: str | None
    to_date: str | None
    recordings: list[UnifiedRecording] = field(default_factory=list)
    errors: list[UnitError] = field(default_factory=list)
    terminated_early: bool = False

    @property
    def total_records(self) -> int:
        return len(self.recordings)


@dataclass
class MeetingSearchResult(SourceResult):
    """Meetings fan-out result; ``errors`` holds one entry per failed user."""

    users_total: int = 0
    users_succeeded: int = 0

    @property
    def all_failed(self) -> bool:
        return self.users_total > 0 and self.users_succeeded == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_date,
            "to": self.to_date,
            "total_records": self.total_records,
            "users_total": self.users_total,
            "users_succeeded": self.users_succeeded,
            "terminated_early": self.terminated_early,
            "meetings": [r.to_dict() for r in self.recordings],
            "_errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class MeetingUsersView:
    """Debug variant: the enumerated users, no recordings fetched."""

    users: list[dict[str, Any]]
    terminated_early: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "debug": "users",
            "total_users": len(self.users),
            "terminated_early": self.terminated_early,
            "users": [
                {"id": u.get("id"), "email": u.get("email"), "status": u.get("status")}
                for u in self.users
            ],
        }


@dataclass
class UserRecordingCount:
    user_id: str
    email: str
    meetings: int
    truncated: bool = False


@dataclass
class MeetingUserCountsView:
    """Debug variant: per-user meeting counts plus the users that failed."""

    from_date: str | None
    to_date: str | None
    counts: list[UserRecordingCount]
    errors: list[UnitError]
    terminated_early: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "debug": "user-recordings",
            "from": self.from_date,
            "to": self.to_date,
            "terminated_early": self.terminated_early,
            "users": [
                {"user_id": c.user_id, "email": c.email, "meetings": c.meetings}
                for c in self.counts
            ],
            "_errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class MeetingFilters:
    """Case-insensitive substring filters applied after the fan-out."""

    owner_email: str = ""
    topic: str = ""
    q: str = ""


def chunk_by_month(
    from_date: str | None,
    to_date: str | None,
) -> list[tuple[str | None, str | None]]:
    """Split a date window into calendar-month chunks to satisfy Zoom limits."""

    if not from_date or not to_date:
        return [(from_date, to_date)]

    start = datetime.strptime(from_date, "%Y-%m-%d").date()
    end = datetime.strptime(to_date, "%Y-%m-%d").date()
    if start > end:
        raise ValidationError(
            "from_date must be before or equal to to_date",
            details=f"from={from_date} to={to_date}",
        )

    chunks: list[tuple[str | None, str | None]] = []
    current = start
    while current <= end:
        if current.month == 12:
            next_month = date(current.year + 1, 1, 1)
        else:
            next_month = date(current.year, current.month + 1, 1)
        chunk_end = min(next_month - timedelta(days=1), end)
        chunks.append((current.isoformat(), chunk_end.isoformat()))
        current = chunk_end + timedelta(days=1)
    return chunks


def _contains(value: str, needle: str) -> bool:
    return needle in (value or "").lower()


def filter_meetings(
    records: Iterable[UnifiedRecording], filters: MeetingFilters
) -> list[UnifiedRecording]:
    """Narrow by owner email, then topic, then free text (AND semantics)."""
    result = list(records)
    owner = filters.owner_email.strip().lower()
    topic = filters.topic.strip().lower()
    q = filters.q.strip().lower()

    if owner:
        result = [r for r in result if r.meeting and _contains(r.meeting.owner_email, owner)]
    if topic:
        result = [r for r in result if _contains(r.topic, topic)]
    if q:

        def _haystack(r: UnifiedRecording) -> str:
            m = r.meeting
            if m is None:
                return r.search_haystack()
            return " ".join([m.topic, m.owner_email, m.host_id, m.host_email]).lower()

        result = [r for r in result if q in _haystack(r)]
    return result


class CursorSource:
    """Account-wide collection fetched with one sequential cursor loop."""

    name = ""
    items_key = "recordings"
    parser: Callable[[dict[str, Any]], UnifiedRecording]

    def __init__(self, client: ZoomClient, *, page_size: int = 300, max_pages: int = 20):
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    def _fetch_page(
        self, from_date: str | None, to_date: str | None, token: str | None
    ) -> Page:
        raise NotImplementedError

    def fetch(self, from_date: str | None, to_date: str | None) -> SourceResult:
        pages = fetch_all_pages(
            lambda token: self._fetch_page(from_date, to_date, token),
            max_pages=self.max_pages,
            label=f"{self.name} recordings",
        )
        first = pages.pages[0] if pages.pages else {}
        recordings = parse_items(pages.items(self.items_key), type(self).parser)
        logger.info(
            "Fetched %d %s recordings over %d page(s)",
            len(recordings),
            self.name,
            len(pages.pages),
        )
        return SourceResult(
            source=self.name,
            from_date=first.get("from") or from_date,
            to_date=first.get("to") or to_date,
            recordings=recordings,
            terminated_early=pages.terminated_early,
        )


class PhoneSource(CursorSource):
    name = "phone"
    parser = staticmethod(parse_phone_recording)

    def _fetch_page(self, from_date: str | None, to_date: str | None, token: str | None) -> Page:
        return self.client.get_phone_recordings(
            from_date=from_date,
            to_date=to_date,
            page_size=self.page_size,
            next_page_token=token,
        )


class ContactCenterSource(CursorSource):
    name = "cc"
    parser = staticmethod(parse_contact_center_recording)

    def __init__(self, client: ZoomClient, *, page_size: int = 300, max_pages: int = 50):
        super().__init__(client, page_size=page_size, max_pages=max_pages)

    def _fetch_page(self, from_date: str | None, to_date: str | None, token: str | None) -> Page:
        return self.client.get_contact_center_recordings(
            from_date=from_date,
            to_date=to_date,
            page_size=self.page_size,
            next_page_token=token,
        )


class MeetingsSource:
    """Two-level fan-out: enumerate users, then fetch each user's recordings."""

    name = "meetings"

    def __init__(
        self,
        client: ZoomClient,
        *,
        page_size: int = 300,
        user_max_pages: int = 1000,
        recordings_max_pages: int = 50,
        concurrency: int = 4,
    ):
        self.client = client
        self.page_size = page_size
        self.user_max_pages = user_max_pages
        self.recordings_max_pages = recordings_max_pages
        self.concurrency = concurrency

    def list_users(self) -> MeetingUsersView:
        pages = fetch_all_pages(
            lambda token: self.client.list_users(
                status="active", page_size=self.page_size, next_page_token=token
            ),
            max_pages=self.user_max_pages,
            label="users",
        )
        users = [u for u in pages.items("users") if isinstance(u, dict)]
        logger.info("Enumerated %d active users", len(users))
        return MeetingUsersView(users=users, terminated_early=pages.terminated_early)

    @staticmethod
    def _user_units(
        users: list[dict[str, Any]],
    ) -> tuple[list[WorkUnit], list[WorkResult[Any]]]:
        """One unit per enumerated user; users with neither id nor email fail up front."""
        units: list[WorkUnit] = []
        rejected: list[WorkResult[Any]] = []
        for index, user in enumerate(users):
            email = str(user.get("email") or "")
            user_id = str(user.get("id") or email)
            if not user_id:
                unit = WorkUnit(subject_id=f"user[{index}]", subject_label=f"user #{index + 1}")
                error = ValidationError("User entry has neither id nor email")
                logger.warning("Cannot fetch recordings for %s: %s", unit.subject_label, error)
                rejected.append(WorkResult(unit=unit, error=UnitError.from_exception(unit, error)))
                continue
            units.append(WorkUnit(subject_id=user_id, subject_label=email, payload=user))
        return units, rejected

    def _fetch_user_meetings(
        self, unit: WorkUnit, from_date: str | None, to_date: str | None
    ) -> tuple[list[dict[str, Any]], bool]:
        """Raw meetings of one user across month chunks, plus whether any chunk hit its cap."""
        meetings: list[dict[str, Any]] = []
        truncated = False
        for chunk_from, chunk_to in chunk_by_month(from_date, to_date):
            pages = fetch_all_pages(
                lambda token: self.client.get_user_recordings(
                    unit.subject_id,
                    from_date=chunk_from,
                    to_date=chunk_to,
                    page_size=self.page_size,
                    next_page_token=token,
                ),
                max_pages=self.recordings_max_pages,
                label=f"recordings of {unit.subject_label or unit.subject_id}",
            )
            meetings.extend(m for m in pages.items("meetings") if isinstance(m, dict))
            truncated = truncated or pages.terminated_early
        return meetings, truncated

    def _fan_out(
        self,
        from_date: str | None,
        to_date: str | None,
        task: Callable[[WorkUnit], Any],
        cancel: threading.Event | None,
    ) -> tuple[MeetingUsersView, PoolOutcome[Any]]:
        users_view = self.list_users()
        units, rejected = self._user_units(users_view.users)
        outcome = run_bounded(units, self.concurrency, task, cancel=cancel)
        if rejected and not outcome.cancelled:
            outcome.results.extend(rejected)
            outcome.dispatched += len(rejected)
        if outcome.errors:
            logger.warning(
                "%d of %d user recording fetches failed",
                outcome.error_count,
                len(users_view.users),
            )
        return users_view, outcome

    def fetch(
        self,
        from_date: str | None,
        to_date: str | None,
        filters: MeetingFilters | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> MeetingSearchResult:
        def _task(unit: WorkUnit) -> tuple[list[UnifiedRecording], bool]:
            raw, truncated = self._fetch_user_meetings(unit, from_date, to_date)
            records = [parse_meeting_recording(m, owner_email=unit.subject_label) for m in raw]
            return records, truncated

        users_view, outcome = self._fan_out(from_date, to_date, _task, cancel)

        recordings: list[UnifiedRecording] = []
        terminated_early = users_view.terminated_early
        for result in outcome.successes:
            if result.value is None:
                continue
            records, truncated = result.value
            recordings.extend(records)
            terminated_early = terminated_early or truncated
        if filters is not None:
            recordings = filter_meetings(recordings, filters)

        return MeetingSearchResult(
            source=self.name,
            from_date=from_date,
            to_date=to_date,
            recordings=recordings,
            errors=outcome.errors,
            terminated_early=terminated_early,
            users_total=outcome.dispatched,
            users_succeeded=outcome.success_count,
        )

    def user_recording_counts(
        self,
        from_date: str | None,
        to_date: str | None,
        *,
        cancel: threading.Event | None = None,
    ) -> MeetingUserCountsView:
        def _task(unit: WorkUnit) -> UserRecordingCount:
            raw, truncated = self._fetch_user_meetings(unit, from_date, to_date)
            return UserRecordingCount(
                user_id=unit.subject_id,
                email=unit.subject_label,
                meetings=len(raw),
                truncated=truncated,
            )

        users_view, outcome = self._fan_out(from_date, to_date, _task, cancel)
        counts = sorted(
            (r.value for r in outcome.successes if r.value is not None),
            key=lambda c: (c.email, c.user_id),
        )
        return MeetingUserCountsView(
            from_date=from_date,
            to_date=to_date,
            counts=counts,
            errors=outcome.errors,
            terminated_early=users_view.terminated_early or any(c.truncated for c in counts),
        )

    def run(
        self,
        from_date: str | None,
        to_date: str | None,
        view: MeetingsView = "records",
        filters: MeetingFilters | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> MeetingSearchResult | MeetingUsersView | MeetingUserCountsView:
        """Produce one of the three response variants of a meetings search."""
        if view == "users":
            return self.list_users()
        if view == "user-recordings":
            return self.user_recording_counts(from_date, to_date, cancel=cancel)
        if view == "records":
            return self.fetch(from_date, to_date, filters, cancel=cancel)
        raise ValidationError(f"Unknown meetings view: {view!r}", details=", ".join(MEETINGS_VIEWS))
