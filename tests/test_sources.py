"""
Tests for the phone, contact center and meetings source adapters
"""

import pytest

from recexplorer.exceptions import TransportError, ValidationError
from recexplorer.normalize import parse_meeting_recording
from recexplorer.sources import (
    ContactCenterSource,
    MeetingFilters,
    MeetingsSource,
    PhoneSource,
    chunk_by_month,
    filter_meetings,
)

from .stub_client import StubZoomClient

USERS_PAGE = {
    "users": [
        {"id": "u1", "email": "a@x.com", "status": "active"},
        {"id": "u2", "email": "b@x.com", "status": "active"},
        {"id": "u3", "email": "c@x.com", "status": "active"},
    ]
}


def _meeting(uuid, topic="Sync"):
    return {"uuid": uuid, "topic": topic, "start_time": "2024-03-02T10:00:00Z"}


class TestCursorSources:
    def test_phone_follows_cursor_and_uses_window_echo(self):
        client = StubZoomClient(
            phone=[
                {
                    "from": "2024-03-01",
                    "to": "2024-03-02",
                    "recordings": [{"id": "r1"}],
                    "next_page_token": "n1",
                },
                {"recordings": [{"id": "r2"}, "junk"]},
            ]
        )

        result = PhoneSource(client, page_size=300).fetch("2024-03-01", "2024-03-02")

        assert [r.id for r in result.recordings] == ["r1", "r2"]
        assert result.from_date == "2024-03-01"
        assert result.terminated_early is False
        assert [c[3] for c in client.calls] == [None, "n1"]

    def test_phone_truncates_at_twenty_pages(self):
        pages = [{"recordings": [{"id": f"r{i}"}], "next_page_token": f"t{i}"} for i in range(30)]
        client = StubZoomClient(phone=pages)

        result = PhoneSource(client).fetch("2024-03-01", "2024-03-31")

        assert len(client.calls) == 20
        assert result.total_records == 20
        assert result.terminated_early is True

    def test_cursor_error_aborts_source(self):
        client = StubZoomClient(
            phone=[{"recordings": [], "next_page_token": "n"}, TransportError("x", status_code=500)]
        )
        with pytest.raises(TransportError):
            PhoneSource(client).fetch("2024-03-01", "2024-03-02")

    def test_contact_center_default_cap_is_fifty(self):
        pages = [{"recordings": [], "next_page_token": f"t{i}"} for i in range(60)]
        client = StubZoomClient(cc=pages)

        result = ContactCenterSource(client).fetch("2024-03-01", "2024-03-02")

        assert len(client.calls) == 50
        assert result.terminated_early is True


class TestMeetingsFanOut:
    def test_one_failing_user_does_not_abort_others(self):
        client = StubZoomClient(
            users=[USERS_PAGE],
            user_recordings={
                "u1": [{"meetings": [_meeting("m1"), _meeting("m2")]}],
                "u2": [TransportError("Zoom API error (HTTP 500)", status_code=500, body="err")],
                "u3": [{"meetings": [_meeting("m3")]}],
            },
        )
        source = MeetingsSource(client, concurrency=2)

        result = source.fetch("2024-03-01", "2024-03-10")

        assert sorted(r.meeting.uuid for r in result.recordings) == ["m1", "m2", "m3"]
        assert result.users_total == 3
        assert result.users_succeeded == 2
        assert result.all_failed is False
        payload = result.to_dict()
        assert payload["total_records"] == 3
        assert len(payload["_errors"]) == 1
        assert payload["_errors"][0]["subject_id"] == "u2"
        assert payload["_errors"][0]["status"] == 500

    def test_all_users_failing(self):
        client = StubZoomClient(
            users=[{"users": [{"id": "u1", "email": "a@x.com"}]}],
            user_recordings={"u1": [TransportError("down", status_code=503)]},
        )
        result = MeetingsSource(client).fetch("2024-03-01", "2024-03-02")

        assert result.recordings == []
        assert result.all_failed is True

    def test_owner_email_stamped_from_listing_user(self):
        client = StubZoomClient(
            users=[{"users": [{"id": "u1", "email": "ada@x.com"}]}],
            user_recordings={"u1": [{"meetings": [_meeting("m1")]}]},
        )
        [record] = MeetingsSource(client).fetch("2024-03-01", "2024-03-02").recordings
        assert record.meeting.owner_email == "ada@x.com"

    def test_window_is_split_by_month_per_user(self):
        client = StubZoomClient(
            users=[{"users": [{"id": "u1", "email": "a@x.com"}]}],
            user_recordings={
                "u1": [
                    {"meetings": [_meeting("jan")], "next_page_token": "J2"},
                    {"meetings": [_meeting("jan2")]},
                    {"meetings": [_meeting("feb")]},
                ]
            },
        )

        result = MeetingsSource(client).fetch("2024-01-20", "2024-02-10")

        calls = [c for c in client.calls if c[0] == "user_recordings"]
        assert [(c[2], c[3], c[4]) for c in calls] == [
            ("2024-01-20", "2024-01-31", None),
            ("2024-01-20", "2024-01-31", "J2"),
            ("2024-02-01", "2024-02-10", None),
        ]
        assert result.total_records == 3

    def test_users_without_id_fall_back_to_email(self):
        client = StubZoomClient(
            users=[{"users": [{"email": "only@x.com"}, {"status": "active"}]}],
            user_recordings={"only@x.com": [{"meetings": [_meeting("m1")]}]},
        )
        result = MeetingsSource(client).fetch("2024-03-01", "2024-03-02")

        assert result.total_records == 1
        assert result.users_total == 2
        assert result.users_succeeded == 1
        [error] = result.errors
        assert error.subject_id == "user[1]"
        assert "neither id nor email" in error.message
        assert [c[1] for c in client.calls if c[0] == "user_recordings"] == ["only@x.com"]

    def test_user_recordings_page_cap_marks_incomplete(self):
        pages = [{"meetings": [_meeting(f"m{i}")], "next_page_token": f"t{i}"} for i in range(10)]
        client = StubZoomClient(
            users=[{"users": [{"id": "u1", "email": "a@x.com"}]}],
            user_recordings={"u1": pages},
        )

        result = MeetingsSource(client, recordings_max_pages=3).fetch("2024-03-01", "2024-03-02")

        assert result.total_records == 3
        assert result.terminated_early is True
        assert result.to_dict()["terminated_early"] is True

    def test_user_recordings_below_cap_is_complete(self):
        client = StubZoomClient(
            users=[{"users": [{"id": "u1", "email": "a@x.com"}]}],
            user_recordings={"u1": [{"meetings": [_meeting("m1")], "next_page_token": ""}]},
        )

        result = MeetingsSource(client, recordings_max_pages=3).fetch("2024-03-01", "2024-03-02")

        assert result.terminated_early is False

    def test_counts_view_reports_page_cap(self):
        pages = [{"meetings": [_meeting(f"m{i}")], "next_page_token": f"t{i}"} for i in range(5)]
        client = StubZoomClient(
            users=[{"users": [{"id": "u1", "email": "a@x.com"}]}],
            user_recordings={"u1": pages},
        )

        view = MeetingsSource(client, recordings_max_pages=2).run(
            "2024-03-01", "2024-03-02", view="user-recordings"
        )

        data = view.to_dict()
        assert data["users"] == [{"user_id": "u1", "email": "a@x.com", "meetings": 2}]
        assert data["terminated_early"] is True

    def test_users_debug_view(self):
        client = StubZoomClient(users=[USERS_PAGE])

        view = MeetingsSource(client).run("2024-03-01", "2024-03-02", view="users")

        data = view.to_dict()
        assert data["debug"] == "users"
        assert data["total_users"] == 3
        assert not [c for c in client.calls if c[0] == "user_recordings"]

    def test_user_recordings_debug_view(self):
        client = StubZoomClient(
            users=[USERS_PAGE],
            user_recordings={
                "u1": [{"meetings": [_meeting("m1"), _meeting("m2")]}],
                "u2": [{"meetings": []}],
                "u3": [TransportError("nope", status_code=404)],
            },
        )

        view = MeetingsSource(client).run("2024-03-01", "2024-03-02", view="user-recordings")

        data = view.to_dict()
        assert data["users"] == [
            {"user_id": "u1", "email": "a@x.com", "meetings": 2},
            {"user_id": "u2", "email": "b@x.com", "meetings": 0},
        ]
        assert [e["subject_id"] for e in data["_errors"]] == ["u3"]

    def test_unknown_view_rejected(self):
        with pytest.raises(ValidationError):
            MeetingsSource(StubZoomClient()).run("2024-03-01", "2024-03-02", view="bogus")


class TestChunkByMonth:
    def test_spans_year_boundary(self):
        assert chunk_by_month("2023-12-15", "2024-02-03") == [
            ("2023-12-15", "2023-12-31"),
            ("2024-01-01", "2024-01-31"),
            ("2024-02-01", "2024-02-03"),
        ]

    def test_single_day(self):
        assert chunk_by_month("2024-03-05", "2024-03-05") == [("2024-03-05", "2024-03-05")]

    def test_open_window_is_passed_through(self):
        assert chunk_by_month(None, None) == [(None, None)]

    def test_inverted_window_rejected(self):
        with pytest.raises(ValidationError):
            chunk_by_month("2024-03-05", "2024-03-01")


class TestFilterMeetings:
    records = [
        parse_meeting_recording(
            {"uuid": "1", "topic": "Onboarding Call", "host_id": "h1"},
            owner_email="onboarding-bot@x.com",
        ),
        parse_meeting_recording(
            {"uuid": "2", "topic": "Onboarding Call", "host_id": "h2"},
            owner_email="ada@x.com",
        ),
        parse_meeting_recording(
            {"uuid": "3", "topic": "Design Sync", "host_id": "h3"},
            owner_email="onboarding-bot@x.com",
        ),
    ]

    def test_filters_are_anded(self):
        filters = MeetingFilters(owner_email="ONBOARDING", topic="call")
        assert [r.meeting.uuid for r in filter_meetings(self.records, filters)] == ["1"]

    def test_order_independent(self):
        by_owner = filter_meetings(self.records, MeetingFilters(owner_email="onboarding"))
        then_topic = filter_meetings(by_owner, MeetingFilters(topic="call"))
        by_topic = filter_meetings(self.records, MeetingFilters(topic="call"))
        then_owner = filter_meetings(by_topic, MeetingFilters(owner_email="onboarding"))
        assert then_topic == then_owner

    def test_free_text_matches_host_id(self):
        result = filter_meetings(self.records, MeetingFilters(q="H3"))
        assert [r.meeting.uuid for r in result] == ["3"]

    def test_empty_filters_keep_everything(self):
        assert filter_meetings(self.records, MeetingFilters()) == self.records
