"""Plain-dict views of records for JSON transports."""

from dataclasses import asdict, is_dataclass
from datetime import datetime


def to_dict(record) -> dict:
    """Convert a record dataclass to a JSON-ready dict."""
    if not is_dataclass(record):
        raise TypeError(f"Not a record: {record!r}")
    return {k: _jsonable(v) for k, v in asdict(record).items()}


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value
