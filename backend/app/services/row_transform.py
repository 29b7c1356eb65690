"""Field coercion between CSV cells and stored document values.

Import direction: cells arrive as strings and are coerced into the shapes the
row schemas expect. Coercion never raises; a value that cannot be coerced is
dropped so the schema reports it as absent instead.

Export direction: stored values are flattened back into spreadsheet cells
(multi-value lists joined, timestamps reduced to calendar dates).
"""
import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any

from app.core.config import settings

logger = logging.getLogger(__name__)

_DATE_ONLY_FORMAT = "%Y-%m-%d"


# ─── Import direction ───

def drop_blank_fields(row: Mapping[str | None, Any]) -> dict[str, Any]:
    """Copy a parsed CSV row, discarding empty cells and overflow columns."""
    cleaned: dict[str, Any] = {}
    for key, value in row.items():
        if key is None:
            continue
        key = key.strip()
        if not key:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        elif value is None:
            continue
        cleaned[key] = value
    return cleaned


def split_multi_value(value: Any, delimiter: str | None = None) -> list[str]:
    """``"a| b ||c"`` -> ``["a", "b", "c"]``; anything else -> ``[]``."""
    delimiter = delimiter or settings.MULTI_VALUE_DELIMITER
    if isinstance(value, str):
        tokens: Iterable[Any] = value.split(delimiter)
    elif isinstance(value, (list, tuple)):
        tokens = value
    else:
        return []
    return [str(token).strip() for token in tokens if str(token).strip()]


def coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_calendar_date(value: Any) -> datetime | None:
    """Parse ``YYYY-MM-DD`` (or a full ISO datetime) into a datetime.

    Date-only input is pinned to midnight UTC so the calendar day survives a
    round trip through storage.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        parsed = datetime.strptime(text, _DATE_ONLY_FORMAT)
        return parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def transform_contact_row(raw: Mapping[str | None, Any]) -> dict[str, Any]:
    row = drop_blank_fields(raw)

    if "score" in row:
        score = coerce_int(row["score"])
        if score is None:
            logger.debug("Dropping non-numeric score %r", row["score"])
            del row["score"]
        else:
            row["score"] = score

    if "lastCommunicationDate" in row:
        parsed = parse_calendar_date(row["lastCommunicationDate"])
        if parsed is None:
            del row["lastCommunicationDate"]
        else:
            row["lastCommunicationDate"] = parsed

    row["tags"] = split_multi_value(row.get("tags"))
    return row


# ─── Export direction ───

def join_multi_value(values: Any, delimiter: str | None = None) -> str:
    delimiter = delimiter or settings.MULTI_VALUE_DELIMITER
    if not values:
        return ""
    if isinstance(values, str):
        return values
    return delimiter.join(str(v) for v in values)


def safe_to_datetime(value: Any) -> datetime | None:
    """Best-effort conversion of a stored timestamp to a datetime.

    Accepts datetimes, dates, ISO strings, epoch milliseconds and
    ``{"seconds": ..., "nanoseconds": ...}`` mappings. Returns None otherwise.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        if isinstance(value, Mapping) and "seconds" in value:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if isinstance(value, str):
            return datetime.fromisoformat(value.strip())
    except (ValueError, TypeError, OverflowError, OSError) as exc:
        logger.warning("Unreadable timestamp %r: %s", value, exc)
    return None


def format_calendar_date(value: Any, fallback: str = "") -> str:
    parsed = safe_to_datetime(value)
    if parsed is None:
        return fallback
    return parsed.strftime(_DATE_ONLY_FORMAT)
