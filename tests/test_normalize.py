"""
Tests for upstream schema normalization
"""

import pytest

from recexplorer.models import record_key
from recexplorer.normalize import (
    parse_contact_center_recording,
    parse_items,
    parse_meeting_recording,
    parse_phone_recording,
)


def _meeting_raw(**overrides):
    raw = {
        "uuid": "abc/==",
        "id": 123456789,
        "topic": "Weekly Standup",
        "host_id": "host-1",
        "host_email": "ada@example.com",
        "start_time": "2024-03-01T10:00:00Z",
        "duration": 30,
        "auto_delete": True,
        "auto_delete_date": "2024-04-01",
        "recording_files": [
            {
                "id": "f2",
                "file_type": "MP4",
                "file_extension": "MP4",
                "file_size": 1000,
                "recording_start": "2024-03-01T10:05:00Z",
            },
            {
                "id": "f1",
                "file_type": "M4A",
                "file_extension": "M4A",
                "file_size": 250,
                "recording_start": "2024-03-01T10:01:00Z",
            },
            {
                "id": "f3",
                "file_type": "MP4",
                "file_size": 50,
                "recording_start": "2024-03-01T10:02:00Z",
            },
        ],
    }
    raw.update(overrides)
    return raw


class TestPhone:
    def test_full_record(self):
        record = parse_phone_recording(
            {
                "id": "rec-1",
                "caller_name": "Acme",
                "caller_number": "+1555",
                "callee_name": "Ada",
                "callee_number": "101",
                "date_time": "2024-03-01T10:00:00Z",
                "end_time": "2024-03-01T10:05:00Z",
                "duration": 300,
                "direction": "inbound",
                "owner": {"type": "user", "id": "u1", "name": "Ada Lovelace"},
                "site": {"id": "s1", "name": "Main"},
            }
        )
        assert record.source == "phone"
        assert record.duration == 300
        assert record.owner.name == "Ada Lovelace"
        assert record.site.name == "Main"
        assert record.meeting is None
        assert record_key(record) == "p||rec-1"

    @pytest.mark.parametrize(
        "raw",
        [
            {},
            {"owner": "not-a-dict", "site": None, "duration": "12"},
            {"duration": float("nan"), "caller_name": {"nested": True}},
            {"duration": True, "end_time": None},
        ],
    )
    def test_schema_stable_on_odd_payloads(self, raw):
        record = parse_phone_recording(raw)
        assert record.duration == 0
        assert record.caller_name == ""
        assert record.end_time is None
        assert record.owner_display_name == "Unknown"


class TestMeeting:
    def test_file_derived_fields(self):
        record = parse_meeting_recording(_meeting_raw(), owner_email="ada@example.com")
        meeting = record.meeting

        assert record.source == "meetings"
        assert record.id == "abc/=="
        assert meeting.files_count == 3
        assert meeting.file_types == ("MP4", "M4A")
        assert meeting.primary_file_type == "MP4"
        assert meeting.primary_file_extension == "MP4"
        assert meeting.total_size == 1300
        assert record.date_time == "2024-03-01T10:01:00Z"
        assert record.duration == 30 * 60
        assert meeting.auto_delete is True
        assert meeting.owner_email == "ada@example.com"
        assert record.caller_name == "Weekly Standup"
        assert record.callee_name == "ada@example.com"
        assert record_key(record) == "m|abc/==|abc/=="

    def test_no_files_falls_back_to_start_time(self):
        record = parse_meeting_recording(_meeting_raw(recording_files=[]))
        meeting = record.meeting

        assert record.date_time == "2024-03-01T10:00:00Z"
        assert meeting.files_count == 0
        assert meeting.file_types == ()
        assert meeting.primary_file_type is None
        assert meeting.primary_file_extension is None
        assert meeting.total_size == 0

    def test_missing_uuid_uses_numeric_id(self):
        record = parse_meeting_recording(_meeting_raw(uuid=None))
        assert record.id == "123456789"
        assert record.meeting.uuid == ""

    def test_host_email_falls_back_to_owner_email(self):
        record = parse_meeting_recording(
            _meeting_raw(host_email=None), owner_email="grace@example.com"
        )
        assert record.meeting.host_email == "grace@example.com"

    def test_auto_delete_non_bool_is_unknown(self):
        record = parse_meeting_recording(_meeting_raw(auto_delete="yes"))
        assert record.auto_delete is None

    def test_mistyped_files_are_skipped(self):
        record = parse_meeting_recording(
            _meeting_raw(recording_files=["junk", {"file_type": "CHAT", "file_size": "big"}])
        )
        assert record.meeting.files_count == 1
        assert record.meeting.total_size == 0

    @pytest.mark.parametrize("files", [5, True, {"file_type": "MP4"}, "MP4"])
    def test_non_list_files_default_to_none(self, files):
        record = parse_meeting_recording({"uuid": "x", "recording_files": files})

        assert record.meeting.uuid == "x"
        assert record.meeting.files_count == 0
        assert record.meeting.primary_file_type is None


class TestContactCenter:
    def test_consumer_and_agent(self):
        record = parse_contact_center_recording(
            {
                "recording_id": "cc-1",
                "recording_start_time": "2024-03-01T09:00:00Z",
                "recording_duration": 90,
                "consumers": [{"consumer_name": "Globex", "consumer_number": "+1444"}],
                "display_name": "Grace Hopper",
                "user_email": "grace@example.com",
                "cc_queue_id": "q1",
                "queue_name": "Support",
            }
        )
        assert record.source == "cc"
        assert record.caller_name == "Globex"
        assert record.callee_name == "Grace Hopper"
        assert record.owner.type == "queue"
        assert record.site.name == "Support"
        assert record.contact_center.agent_email == "grace@example.com"
        assert record_key(record) == "c||cc-1"

    def test_empty_payload(self):
        record = parse_contact_center_recording({"consumers": []})
        assert record.id == ""
        assert record.site.name == "CC"
        assert record.owner_display_name == "Agent"


def test_parse_items_skips_non_objects():
    records = parse_items([{"id": "a"}, None, "x", 5, {"id": "b"}], parse_phone_recording)
    assert [r.id for r in records] == ["a", "b"]


def test_key_falls_back_to_index():
    record = parse_phone_recording({})
    assert record_key(record) == "p||0"
