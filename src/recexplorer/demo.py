"""
Synthetic recordings for demo/offline mode.

Records are produced in the upstream JSON shapes and passed through the same
parsers as live data, so nothing downstream can tell them apart.
"""

import random
from datetime import UTC, date, datetime, time, timedelta

from recexplorer.models import UnifiedRecording
from recexplorer.normalize import (
    parse_contact_center_recording,
    parse_meeting_recording,
    parse_phone_recording,
)

MAX_DEMO_DAYS = 92

_PEOPLE = [
    ("Ada Lovelace", "ada@example.com", "+15550100"),
    ("Grace Hopper", "grace@example.com", "+15550101"),
    ("Alan Turing", "alan@example.com", "+15550102"),
    ("Katherine Johnson", "katherine@example.com", "+15550103"),
    ("Edsger Dijkstra", "edsger@example.com", "+15550104"),
]
_CUSTOMERS = [
    ("Acme Corp", "+15559870001"),
    ("Globex", "+15559870002"),
    ("Initech", "+15559870003"),
    ("Umbrella", "+15559870004"),
]
_TOPICS = ["Weekly Standup", "Onboarding Call", "Quarterly Review", "Design Sync", "1:1"]
_QUEUES = [("q-support", "Support"), ("q-sales", "Sales"), ("q-billing", "Billing")]


def _days(from_date: str, to_date: str) -> list[date]:
    start = date.fromisoformat(from_date)
    end = date.fromisoformat(to_date)
    if end < start:
        start, end = end, start
    span = min((end - start).days + 1, MAX_DEMO_DAYS)
    return [start + timedelta(days=i) for i in range(span)]


def _at(day: date, rng: random.Random) -> datetime:
    return datetime.combine(
        day, time(hour=rng.randint(8, 17), minute=rng.randint(0, 59)), tzinfo=UTC
    )


def _iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _phone(day: date, n: int, rng: random.Random) -> UnifiedRecording:
    name, _, ext = rng.choice(_PEOPLE)
    customer, number = rng.choice(_CUSTOMERS)
    start = _at(day, rng)
    duration = rng.randint(30, 1800)
    inbound = rng.random() < 0.5
    return parse_phone_recording(
        {
            "id": f"demo-phone-{day:%Y%m%d}-{n}",
            "caller_name": customer if inbound else name,
            "caller_number": number if inbound else ext,
            "callee_name": name if inbound else customer,
            "callee_number": ext if inbound else number,
            "date_time": _iso(start),
            "end_time": _iso(start + timedelta(seconds=duration)),
            "duration": duration,
            "direction": "inbound" if inbound else "outbound",
            "recording_type": "Automatic",
            "owner": {"type": "user", "id": f"u-{ext}", "name": name},
            "site": {"id": "site-main", "name": "Main Office"},
        }
    )


def _meeting(day: date, n: int, rng: random.Random) -> UnifiedRecording:
    name, email, _ = rng.choice(_PEOPLE)
    start = _at(day, rng)
    minutes = rng.randint(10, 90)
    end = start + timedelta(minutes=minutes)
    files = [
        {
            "id": f"f-{n}-{i}",
            "file_type": file_type,
            "file_extension": file_type,
            "file_size": rng.randint(1_000_000, 250_000_000),
            "recording_type": kind,
            "recording_start": _iso(start),
            "recording_end": _iso(end),
            "status": "completed",
        }
        for i, (file_type, kind) in enumerate(
            [("MP4", "shared_screen_with_speaker_view"), ("M4A", "audio_only")][
                : rng.randint(1, 2)
            ]
        )
    ]
    return parse_meeting_recording(
        {
            "uuid": f"demo-meeting-{day:%Y%m%d}-{n}==",
            "id": 80000000000 + n,
            "topic": rng.choice(_TOPICS),
            "host_id": f"host-{email.split('@')[0]}",
            "host_email": email,
            "host_name": name,
            "start_time": _iso(start),
            "duration": minutes,
            "auto_delete": rng.random() < 0.4,
            "auto_delete_date": (day + timedelta(days=30)).isoformat(),
            "recording_files": files,
        },
        owner_email=email,
    )


def _contact_center(day: date, n: int, rng: random.Random) -> UnifiedRecording:
    name, email, _ = rng.choice(_PEOPLE)
    customer, number = rng.choice(_CUSTOMERS)
    queue_id, queue_name = rng.choice(_QUEUES)
    start = _at(day, rng)
    duration = rng.randint(60, 2400)
    return parse_contact_center_recording(
        {
            "recording_id": f"demo-cc-{day:%Y%m%d}-{n}",
            "recording_start_time": _iso(start),
            "recording_end_time": _iso(start + timedelta(seconds=duration)),
            "recording_duration": duration,
            "consumers": [{"consumer_name": customer, "consumer_number": number}],
            "display_name": name,
            "user_email": email,
            "cc_queue_id": queue_id,
            "queue_name": queue_name,
            "flow_name": f"{queue_name} Flow",
            "channel": "voice",
            "direction": "inbound",
        }
    )


def generate_demo_recordings(from_date: str, to_date: str) -> list[UnifiedRecording]:
    """Deterministic sample dataset spanning ``from_date``..``to_date``."""
    rng = random.Random(f"{from_date}|{to_date}")
    builders = (_phone, _meeting, _contact_center)
    records: list[UnifiedRecording] = []
    n = 0
    for day in _days(from_date, to_date):
        for _ in range(rng.randint(3, 6)):
            records.append(rng.choice(builders)(day, n, rng))
            n += 1
    return records
