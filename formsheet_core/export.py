"""
CSV Export - Serialize the whole grid to a downloadable file

Every field is quoted and embedded quotes are doubled, so any standard CSV
reader gets the original cell text back.
"""

import csv
import io
import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Optional, Sequence

from .store import TabularStore

logger = logging.getLogger(__name__)


def rows_to_csv(rows: Sequence[Sequence[str]]) -> str:
    """Render rows as CSV text (all fields quoted, ``\\n`` line endings)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow(["" if cell is None else str(cell) for cell in row])
    return buffer.getvalue()


def export_filename(prefix: str, tz: Optional[tzinfo] = None, now: Optional[datetime] = None) -> str:
    """``<prefix>_yyyy-MM-dd_HHmmss.csv`` in the given time zone."""
    now = now or datetime.now(tz)
    if tz is not None:
        now = now.astimezone(tz)
    return f"{prefix}_{now.strftime('%Y-%m-%d_%H%M%S')}.csv"


def store_to_csv(store: TabularStore) -> str:
    """CSV text for the store's full grid."""
    return rows_to_csv(store.read_all())


def export_csv(
    store: TabularStore,
    directory: Path,
    prefix: str = "Code_Arena_2025",
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
) -> Path:
    """
    Write the store's grid to a new CSV file.

    Args:
        store: Store to export
        directory: Output directory (created if missing)
        prefix: File name prefix
        tz: Time zone for the file name stamp
        now: Export instant (defaults to now)

    Returns:
        Path of the written file
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / export_filename(prefix, tz, now)
    rows = store.read_all()
    path.write_text(rows_to_csv(rows), encoding="utf-8", newline="")

    logger.info(f"Exported {len(rows)} rows to {path}")
    return path
