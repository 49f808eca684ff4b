"""
Utility functions shared across the app. This includes:
- utcnow / new_id: column defaults used by every model.
- coerce_dates / as_naive_utc: turn date input for DateTime columns into naive UTC datetimes.
- to_api_dict: JSON-ready camelCase snapshot of a model row.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from pydantic.alias_generators import to_camel

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def utcnow() -> datetime:
    """Naive UTC 'now', the convention for every stored timestamp."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def as_naive_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC and stripped of tzinfo."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_datetime(raw: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime string.

    Returns None when the string is not date-shaped or not a valid date.
    """
    text = raw.strip()
    if not _DATE_PREFIX.match(text):
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def coerce_dates(data: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """
    Return a copy of data where the named date fields hold naive UTC datetimes.

    Only keys listed in fields are touched; text columns keep date-shaped strings verbatim.
    Unparseable strings are left as they are for the caller to reject.
    """
    result = dict(data)
    for key in set(fields) & result.keys():
        value = result[key]
        if isinstance(value, str):
            parsed = parse_datetime(value)
            if parsed is not None:
                result[key] = parsed
        elif isinstance(value, datetime):
            result[key] = as_naive_utc(value)
    return result


def json_value(value: Any) -> Any:
    """Decimal -> str, datetime/date -> ISO string, everything else unchanged."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_api_dict(instance: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Convert a SQLAlchemy model instance to a camelCase dict based on table columns.

    Captures only scalar column values (not relationships).
    """
    skip = set(exclude) | set(getattr(instance, "__api_exclude__", ()))
    data: Dict[str, Any] = {}
    for column in instance.__table__.columns:
        if column.key in skip:
            continue
        data[to_camel(column.key)] = json_value(getattr(instance, column.key))
    return data
