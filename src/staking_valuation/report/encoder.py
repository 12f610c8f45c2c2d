"""JSON-ready encoding of valuation results."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def to_dict(result: Any) -> dict[str, Any]:
    """Convert a result dataclass to plain JSON types.

    Enums become their values and datetimes ISO-8601 strings. Raw token
    amounts are already strings and are left untouched.
    """
    if not is_dataclass(result) or isinstance(result, type):
        raise TypeError(f"Expected a dataclass instance, got {type(result).__name__}")
    return _jsonable(asdict(result))


def to_json(result: Any, indent: int | None = 2) -> str:
    return json.dumps(to_dict(result), indent=indent)
