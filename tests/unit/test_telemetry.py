from datetime import datetime, timedelta, timezone

import orjson

from telemetry import TelemetryLog, log_file_name


def test_log_directory_is_created_recursively(tmp_path):
    log_dir = tmp_path / "nested" / "logs"
    TelemetryLog(log_dir)
    assert log_dir.is_dir()

    # Bootstrapping an existing directory is a no-op.
    TelemetryLog(log_dir)
    assert log_dir.is_dir()


def test_file_name_uses_utc_day():
    eastern = timezone(timedelta(hours=-5))
    moment = datetime(2026, 10, 19, 21, 30, tzinfo=eastern)
    assert log_file_name(moment) == "telemetry-2026-10-20.jsonl"


def test_append_writes_one_line_per_record(tmp_path):
    log = TelemetryLog(tmp_path)
    moment = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

    for i in range(3):
        path = log.append({"target": f"site-{i}", "note": "naïve ✓"}, moment)

    assert path == tmp_path / "telemetry-2026-10-19.jsonl"
    lines = path.read_bytes().splitlines()
    assert len(lines) == 3
    assert [orjson.loads(line)["target"] for line in lines] == ["site-0", "site-1", "site-2"]
    assert path.read_bytes().endswith(b"\n")


def test_records_spanning_midnight_go_to_separate_files(tmp_path):
    log = TelemetryLog(tmp_path)
    before = datetime(2026, 10, 19, 23, 59, 59, tzinfo=timezone.utc)
    after = before + timedelta(seconds=2)

    first = log.append({"target": "a"}, before)
    second = log.append({"target": "b"}, after)

    assert first.name == "telemetry-2026-10-19.jsonl"
    assert second.name == "telemetry-2026-10-20.jsonl"


def test_file_pattern_names_the_log_directory(tmp_path):
    log = TelemetryLog(tmp_path / "logs")
    assert log.file_pattern == "logs/telemetry-YYYY-MM-DD.jsonl"
