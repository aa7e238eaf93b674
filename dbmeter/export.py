"""CSV export of the event log."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Iterable

from appdirs import user_data_dir

from .constants import EXPORT_FILENAME, SETTINGS_APPLICATION, SETTINGS_ORGANISATION
from .detector import SoundEvent

logger = logging.getLogger(__name__)

CSV_HEADER = "Timestamp,Level (dB),Description"


def format_csv(events: Iterable[SoundEvent]) -> str:
    """Render events as CSV text.

    Text fields are quoted and the level is left bare, e.g.
    ``"14:02:11",91,"Sound System"``.  Rows are separated by ``\\n`` with
    no trailing newline.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for event in events:
        writer.writerow([event.timestamp, int(event.db), event.label])
    rows = buffer.getvalue().rstrip("\n")
    return f"{CSV_HEADER}\n{rows}"


def default_export_path() -> Path:
    """``noise-logs.csv`` in the user's documents folder, if there is one."""
    documents = Path.home() / "Documents"
    if documents.is_dir():
        return documents / EXPORT_FILENAME
    return Path(user_data_dir(SETTINGS_APPLICATION, SETTINGS_ORGANISATION)) / EXPORT_FILENAME


def export_events(events: Iterable[SoundEvent], path: Path) -> bool:
    """Write ``events`` to ``path``.

    Returns ``False`` without touching the file system when there is nothing
    to export or when writing fails.
    """

    events = list(events)
    if not events:
        logger.info("No events to export")
        return False
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(format_csv(events), encoding="utf-8")
    except OSError as e:
        logger.error("Failed to export logs to %s: %s", path, e)
        return False
    logger.info("Logs exported successfully to %s", path)
    return True


__all__ = ["CSV_HEADER", "format_csv", "default_export_path", "export_events"]
