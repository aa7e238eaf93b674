from pathlib import Path

from dbmeter.detector import SoundEvent
from dbmeter.export import CSV_HEADER, export_events, format_csv


def _events() -> list[SoundEvent]:
    return [
        SoundEvent(id="b", timestamp="14:02:11", db=91, label="Sound System"),
        SoundEvent(id="a", timestamp="13:58:40", db=84, label="Vacuum / Traffic"),
    ]


def test_format_csv_layout() -> None:
    text = format_csv(_events())
    assert text.split("\n") == [
        "Timestamp,Level (dB),Description",
        '"14:02:11",91,"Sound System"',
        '"13:58:40",84,"Vacuum / Traffic"',
    ]
    assert CSV_HEADER == "Timestamp,Level (dB),Description"


def test_export_writes_file(tmp_path: Path) -> None:
    target = tmp_path / "logs" / "noise-logs.csv"
    assert export_events(_events(), target) is True
    assert target.read_text(encoding="utf-8") == format_csv(_events())


def test_export_skips_empty_log(tmp_path: Path) -> None:
    target = tmp_path / "noise-logs.csv"
    assert export_events([], target) is False
    assert not target.exists()


def test_export_reports_write_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert export_events(_events(), blocker / "noise-logs.csv") is False
