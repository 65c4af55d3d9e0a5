from recexplorer.demo import MAX_DEMO_DAYS, generate_demo_recordings
from recexplorer.models import record_key


def test_same_window_same_records():
    first = generate_demo_recordings("2024-01-01", "2024-01-10")
    second = generate_demo_recordings("2024-01-01", "2024-01-10")
    assert first == second


def test_every_source_and_unique_keys():
    records = generate_demo_recordings("2024-01-01", "2024-01-31")
    keys = [record_key(r) for r in records]

    assert {r.source for r in records} == {"phone", "meetings", "cc"}
    assert len(keys) == len(set(keys))


def test_long_windows_are_capped():
    records = generate_demo_recordings("2023-01-01", "2024-12-31")
    days = {r.date_time[:10] for r in records}
    assert len(days) <= MAX_DEMO_DAYS


def test_records_per_day_bounds():
    records = generate_demo_recordings("2024-02-01", "2024-02-01")
    assert 3 <= len(records) <= 6
