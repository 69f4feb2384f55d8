"""JSON serialization for settlement messages, sample-data files and stores.

Decimals are written as strings so percentages keep their exact digits;
enums become their values and datetimes ISO 8601 text.
"""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def to_dict(obj: Any) -> dict:
    """Convert a dataclass or mapping to a JSON-ready dictionary.

    Raises
    ------
    TypeError
        If ``obj`` is neither a dataclass instance nor a mapping.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return dataclass_to_dict(obj)
    if isinstance(obj, dict):
        return {k: serialize_value(v) for k, v in obj.items()}
    raise TypeError(f"Cannot serialize {type(obj).__name__} as a JSON object")


def dataclass_to_dict(obj: Any) -> dict:
    """Convert dataclass to dict with proper serialization."""
    return {key: serialize_value(value) for key, value in asdict(obj).items()}


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


def to_json(obj: Any, pretty: bool = False) -> str:
    """Encode a dataclass or mapping as JSON text, keeping non-ASCII names."""
    return json.dumps(to_dict(obj), indent=2 if pretty else None, ensure_ascii=False)
