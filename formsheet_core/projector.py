"""
Row Projector - Map a submission record onto the header's column order
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Mapping, Optional, Sequence

from .errors import SchemaInvalidError
from .schema import TIMESTAMP_LABEL, key_for_label

logger = logging.getLogger(__name__)

DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"


def _to_datetime(value: Any, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone(tz)
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def format_timestamp(value: Any, tz: Optional[tzinfo] = None) -> str:
    """
    Format a timestamp as ``dd/MM/yyyy HH:mm:ss`` in ``tz``.

    Values that cannot be read as a date are returned unchanged (as text).
    """
    tz = tz or timezone.utc
    try:
        return _to_datetime(value, tz).strftime(DISPLAY_FORMAT)
    except (ValueError, TypeError, OverflowError, OSError):
        logger.debug(f"Unparseable timestamp kept as-is: {value!r}")
        return str(value)


def project_row(
    schema: Sequence[str],
    record: Mapping[str, Any],
    tz: Optional[tzinfo] = None,
) -> List[str]:
    """
    Build the row for ``record`` following the column order of ``schema``.

    Args:
        schema: Header labels
        record: Submission record
        tz: Time zone for the timestamp column

    Returns:
        One string per header label

    Raises:
        SchemaInvalidError: ``schema`` is empty
    """
    if not schema:
        logger.error("ERROR: Headers is not a valid array")
        raise SchemaInvalidError()

    row = []
    for label in schema:
        value = record.get(key_for_label(label))
        if value is None or value == "":
            row.append("")
            continue
        if label == TIMESTAMP_LABEL:
            value = format_timestamp(value, tz)
        row.append(str(value))
    return row
