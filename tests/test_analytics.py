from recexplorer.analytics import MeetingAnalytics, fetch_meeting_analytics, summarize_analytics
from recexplorer.exceptions import TransportError
from recexplorer.normalize import parse_meeting_recording, parse_phone_recording

from .stub_client import StubZoomClient


def test_summarize_totals_and_last_access():
    stats = summarize_analytics(
        "m1",
        {
            "analytics_summary": [
                {"date": "2024-03-01", "views_total_count": 3, "downloads_total_count": 1},
                {"date": "2024-03-04", "views_total_count": 0, "downloads_total_count": 0},
                {"date": "2024-03-03", "views_total_count": 2, "downloads_total_count": "x"},
                "junk",
            ]
        },
    )

    assert stats == MeetingAnalytics("m1", plays=5, downloads=1, last_access_date="2024-03-03")


def test_summarize_empty_payload():
    assert summarize_analytics("m1", {}) == MeetingAnalytics("m1")


def test_fetch_skips_known_and_non_meetings_and_zeroes_failures():
    records = [
        parse_meeting_recording({"uuid": "m1"}),
        parse_meeting_recording({"uuid": "m1"}),
        parse_meeting_recording({"uuid": "m2"}),
        parse_meeting_recording({"uuid": "m3"}),
        parse_phone_recording({"id": "p1"}),
    ]
    client = StubZoomClient(
        analytics={
            "m2": {"analytics_summary": [{"date": "2024-03-01", "views_total_count": 4}]},
            "m3": TransportError("forbidden", status_code=403),
        }
    )
    known = {"m1": MeetingAnalytics("m1", plays=9)}

    stats = fetch_meeting_analytics(
        client, records, "2024-03-01", "2024-03-02", concurrency=2, known=known
    )

    assert stats["m1"].plays == 9
    assert stats["m2"].plays == 4
    assert stats["m3"] == MeetingAnalytics("m3")
    assert sorted(c[1] for c in client.calls) == ["m2", "m3"]
