from __future__ import annotations

import copy
import json
from datetime import date, datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def deep_copy_json(value: Any) -> Any:
    """Detached copy of a JSON-shaped value."""
    return copy.deepcopy(value)


def json_equal(a: Any, b: Any) -> bool:
    """Structural comparison of two JSON-shaped values (key order ignored)."""
    return json.dumps(a, sort_keys=True) == json.dumps(b, sort_keys=True)
