"""
Aggregator: drives one source adapter for a date window and applies the
uniform free-text filter.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from recexplorer.config import Config
from recexplorer.demo import generate_demo_recordings
from recexplorer.exceptions import PartialFetchError, ValidationError
from recexplorer.models import UnifiedRecording
from recexplorer.pool import UnitError
from recexplorer.sources import (
    ContactCenterSource,
    MeetingFilters,
    MeetingsSource,
    MeetingSearchResult,
    MeetingsView,
    PhoneSource,
    SourceResult,
    filter_meetings,
)
from recexplorer.zoom_client import ZoomClient

logger = logging.getLogger(__name__)

SourceChoice = Literal["phone", "meetings", "cc", "combined"]
SOURCE_CHOICES: tuple[str, ...] = ("phone", "meetings", "cc", "combined")


@dataclass(frozen=True)
class SearchRequest:
    from_date: str
    to_date: str
    source: SourceChoice = "phone"
    query: str = ""
    owner_email: str = ""
    topic: str = ""


@dataclass
class SearchResult:
    """Fetched dataset for one search, after the free-text filter.

    ``dataset`` is every record the source returned (indexed by position);
    ``recordings`` is the subset matching the query.
    """

    request: SearchRequest
    dataset: list[UnifiedRecording] = field(default_factory=list)
    recordings: list[UnifiedRecording] = field(default_factory=list)
    errors: list[UnitError] = field(default_factory=list)
    terminated_early: bool = False
    users_total: int = 0
    users_succeeded: int = 0
    from_date: str | None = None
    to_date: str | None = None
    demo: bool = False

    @property
    def total_records(self) -> int:
        return len(self.recordings)

    @property
    def server_total(self) -> int:
        return len(self.dataset)

    @property
    def all_failed(self) -> bool:
        return self.users_total > 0 and self.users_succeeded == 0

    def without(self, removed: list[UnifiedRecording]) -> SearchResult:
        """Copy of this result with ``removed`` records dropped (demo deletes)."""
        gone = {id(r) for r in removed}
        return dataclasses.replace(
            self,
            dataset=[r for r in self.dataset if id(r) not in gone],
            recordings=[r for r in self.recordings if id(r) not in gone],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_date,
            "to": self.to_date,
            "source": self.request.source,
            "query": self.request.query,
            "total_records": self.total_records,
            "server_total": self.server_total,
            "terminated_early": self.terminated_early,
            "demo": self.demo,
            "recordings": [r.to_dict() for r in self.recordings],
            "_errors": [e.to_dict() for e in self.errors],
        }


def matches_query(record: UnifiedRecording, query: str) -> bool:
    """Case-insensitive substring match; an empty query matches everything."""
    needle = query.strip().lower()
    if not needle:
        return True
    return needle in record.search_haystack()


def _sort_key(record: UnifiedRecording) -> float:
    try:
        return datetime.fromisoformat(record.date_time.replace("Z", "+00:00")).timestamp()
    except (ValueError, AttributeError):
        return 0.0


def _validate_window(from_date: str, to_date: str) -> None:
    try:
        start = datetime.strptime(from_date, "%Y-%m-%d")
        end = datetime.strptime(to_date, "%Y-%m-%d")
    except (TypeError, ValueError) as e:
        raise ValidationError("Dates must be YYYY-MM-DD", details=str(e))
    if start > end:
        raise ValidationError(
            "from_date must be before or equal to to_date",
            details=f"from={from_date} to={to_date}",
        )


class Aggregator:
    """Owns the fetched record list for the current search."""

    def __init__(
        self,
        client: ZoomClient | None,
        config: Config | None = None,
        *,
        demo_mode: bool = False,
        strict: bool = False,
    ):
        if client is None and not demo_mode:
            raise ValidationError("A Zoom client is required unless demo mode is enabled")
        self.client = client
        self.config = config or Config()
        self.demo_mode = demo_mode
        self.strict = strict

    def _require_client(self, purpose: str) -> ZoomClient:
        if self.client is None:
            raise ValidationError(f"{purpose} need a Zoom client (not available in demo)")
        return self.client

    def _phone(self) -> PhoneSource:
        return PhoneSource(
            self._require_client("Phone recordings"),
            page_size=self.config.page_size,
            max_pages=self.config.phone_max_pages,
        )

    def _contact_center(self) -> ContactCenterSource:
        return ContactCenterSource(
            self._require_client("Contact Center recordings"),
            page_size=self.config.page_size,
            max_pages=self.config.cc_max_pages,
        )

    def meetings_source(self) -> MeetingsSource:
        return MeetingsSource(
            self._require_client("Meetings searches"),
            page_size=self.config.page_size,
            user_max_pages=self.config.user_max_pages,
            recordings_max_pages=self.config.user_recordings_max_pages,
            concurrency=self.config.meetings_concurrency,
        )

    def _fetch(
        self, request: SearchRequest, cancel: threading.Event | None
    ) -> list[SourceResult]:
        filters = MeetingFilters(owner_email=request.owner_email, topic=request.topic)
        if request.source == "phone":
            return [self._phone().fetch(request.from_date, request.to_date)]
        if request.source == "cc":
            return [self._contact_center().fetch(request.from_date, request.to_date)]
        if request.source == "meetings":
            return [
                self.meetings_source().fetch(
                    request.from_date, request.to_date, filters, cancel=cancel
                )
            ]
        return [
            self._phone().fetch(request.from_date, request.to_date),
            self.meetings_source().fetch(
                request.from_date, request.to_date, filters, cancel=cancel
            ),
        ]

    def _demo(self, request: SearchRequest) -> SearchResult:
        records = generate_demo_recordings(request.from_date, request.to_date)
        if request.source == "combined":
            records = [r for r in records if r.source in ("phone", "meetings")]
        else:
            records = [r for r in records if r.source == request.source]
        if request.source in ("meetings", "combined"):
            filters = MeetingFilters(owner_email=request.owner_email, topic=request.topic)
            meetings = filter_meetings([r for r in records if r.meeting], filters)
            records = [r for r in records if r.meeting is None] + meetings
        return SearchResult(
            request=request,
            dataset=records,
            from_date=request.from_date,
            to_date=request.to_date,
            demo=True,
        )

    def search(
        self, request: SearchRequest, *, cancel: threading.Event | None = None
    ) -> SearchResult:
        """Fetch, merge and filter recordings for one search.

        Raises:
            ValidationError: invalid window or source
            TransportError / MalformedResponseError: a cursor loop failed
            PartialFetchError: strict mode and at least one fan-out unit failed
        """
        _validate_window(request.from_date, request.to_date)
        if request.source not in SOURCE_CHOICES:
            raise ValidationError(
                f"Unknown source: {request.source!r}", details=", ".join(SOURCE_CHOICES)
            )
        logger.info(
            "Searching %s recordings from %s to %s%s",
            request.source,
            request.from_date,
            request.to_date,
            " (demo)" if self.demo_mode else "",
        )

        if self.demo_mode:
            result = self._demo(request)
        else:
            parts = self._fetch(request, cancel)
            result = SearchResult(
                request=request,
                from_date=parts[0].from_date,
                to_date=parts[0].to_date,
            )
            for part in parts:
                result.dataset.extend(part.recordings)
                result.errors.extend(part.errors)
                result.terminated_early = result.terminated_early or part.terminated_early
                if isinstance(part, MeetingSearchResult):
                    result.users_total += part.users_total
                    result.users_succeeded += part.users_succeeded

        if request.source == "combined":
            result.dataset.sort(key=_sort_key, reverse=True)
        result.dataset = [
            dataclasses.replace(record, index=i) for i, record in enumerate(result.dataset)
        ]
        result.recordings = [r for r in result.dataset if matches_query(r, request.query)]

        if result.errors:
            logger.warning(
                "%d fan-out unit(s) failed; returning partial results", len(result.errors)
            )
            if self.strict:
                raise PartialFetchError(
                    f"{len(result.errors)} of {result.users_total} user fetches failed",
                    errors=[e.to_dict() for e in result.errors],
                )
        return result

    def meetings_debug(
        self, from_date: str, to_date: str, view: MeetingsView
    ) -> Any:
        """Run one of the meetings debug variants (``users`` or ``user-recordings``)."""
        _validate_window(from_date, to_date)
        return self.meetings_source().run(from_date, to_date, view=view)
