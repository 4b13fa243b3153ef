from __future__ import annotations

import logging
from typing import Any

from app.pm2.audit import record_event
from app.pm2.constants import LOGS_DIR
from app.pm2.modules.logs.models import (
    LOG_LAYOUTS,
    LOG_TYPES,
    RATING_SCORES,
    LogEntryNotFoundError,
    LogLayout,
    LogValidationError,
    UnknownLogTypeError,
)
from app.pm2.storage import JsonStorage, StorageError
from app.pm2.utils import today_iso

logger = logging.getLogger(__name__)


def log_layout(log_type: str) -> LogLayout:
    layout = LOG_LAYOUTS.get(log_type)
    if layout is None:
        raise UnknownLogTypeError(f"Unknown log type {log_type!r}. Must be one of: {', '.join(LOG_TYPES)}")
    return layout


def log_path(log_type: str) -> str:
    return f"{LOGS_DIR}/{log_layout(log_type).type}.json"


def risk_level(likelihood: str | None, impact: str | None) -> str | None:
    """Score = likelihood x impact (Low=1, Medium=2, High=3); >=6 High, 3..5 Medium."""
    l_score = RATING_SCORES.get(likelihood or "")
    i_score = RATING_SCORES.get(impact or "")
    if not l_score or not i_score:
        return None
    score = l_score * i_score
    if score >= 6:
        return "High"
    if score >= 3:
        return "Medium"
    return "Low"


def validate_entry_payload(layout: LogLayout, payload: dict) -> list[str]:
    """Validate a log entry payload. Returns list of errors."""
    errors = []
    not_text = []
    for field in layout.fields:
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            not_text.append(field)
            errors.append(f"{field} must be text.")

    def text(field: str) -> str:
        value = payload.get(field)
        return value.strip() if isinstance(value, str) else ""

    if "title" not in not_text and not text("title"):
        errors.append("Title is required.")
    if "description" not in not_text and not text("description"):
        errors.append("Description is required.")
    status = text("status")
    if status and status not in layout.statuses:
        errors.append(f"Invalid status. Must be one of: {', '.join(layout.statuses)}")
    for field, options in layout.choices:
        value = text(field)
        if value and value not in options:
            errors.append(f"Invalid {field}. Must be one of: {', '.join(options)}")
    unknown = sorted(set(payload) - set(layout.fields))
    if unknown:
        errors.append(f"Unknown field(s) for {layout.type}: {', '.join(unknown)}")
    return errors


def _clean_entry(layout: LogLayout, payload: dict) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    for field in layout.fields:
        value = payload.get(field)
        entry[field] = value.strip() if isinstance(value, str) else ("" if value is None else value)
    entry["dateLogged"] = entry["dateLogged"] or today_iso()
    if layout.type == "Risks":
        entry["level"] = risk_level(entry["likelihood"], entry["impact"]) or entry["level"] or ""
    return entry


def read_log(storage: JsonStorage, log_type: str) -> list[dict[str, Any]]:
    """Load a log. A missing or unreadable file loads as an empty log."""
    path = log_path(log_type)
    try:
        entries = storage.read_json(path, [])
    except StorageError as e:
        logger.warning("Log %s unreadable, treating as empty: %s", path, e)
        return []
    if not isinstance(entries, list):
        logger.warning("Log %s is not a list, treating as empty", path)
        return []
    return [e for e in entries if isinstance(e, dict)]


def _write_log(storage: JsonStorage, log_type: str, entries: list[dict[str, Any]]) -> None:
    storage.ensure_folder(LOGS_DIR)
    storage.write_json(log_path(log_type), entries)


def list_entries(
    storage: JsonStorage,
    log_type: str,
    sort_key: str | None = None,
    descending: bool = False,
) -> list[dict[str, Any]]:
    """
    Entries with their file position as "index". Sorting is a view only;
    indexes keep pointing at the stored order.
    """
    layout = log_layout(log_type)
    rows = [{**e, "index": i} for i, e in enumerate(read_log(storage, log_type))]
    if sort_key:
        if sort_key not in layout.fields:
            raise LogValidationError([f"Cannot sort {layout.type} by {sort_key!r}"])
        rows.sort(key=lambda r: str(r.get(sort_key) or "").lower(), reverse=descending)
    return rows


def add_entry(storage: JsonStorage, log_type: str, payload: dict) -> dict[str, Any]:
    layout = log_layout(log_type)
    errors = validate_entry_payload(layout, payload)
    if errors:
        raise LogValidationError(errors)

    entry = _clean_entry(layout, payload)
    entries = read_log(storage, log_type)
    entries.append(entry)
    _write_log(storage, log_type, entries)

    record_event(
        storage,
        action="log.create",
        entity_type=layout.type,
        entity_id=str(len(entries) - 1),
        metadata={"title": entry["title"], "status": entry["status"]},
    )
    return entry


def _check_index(layout: LogLayout, entries: list[dict[str, Any]], index: int) -> None:
    if index < 0 or index >= len(entries):
        raise LogEntryNotFoundError(f"{layout.type} has no entry {index}")


def update_entry(storage: JsonStorage, log_type: str, index: int, payload: dict) -> dict[str, Any]:
    layout = log_layout(log_type)
    entries = read_log(storage, log_type)
    _check_index(layout, entries, index)

    merged = {k: v for k, v in entries[index].items() if k in layout.fields}
    merged.update({k: v for k, v in payload.items() if k != "index"})
    errors = validate_entry_payload(layout, merged)
    if errors:
        raise LogValidationError(errors)

    before = entries[index]
    entry = _clean_entry(layout, merged)
    entries[index] = entry
    _write_log(storage, log_type, entries)

    changes = {k: {"old": before.get(k), "new": v} for k, v in entry.items() if before.get(k) != v}
    record_event(
        storage,
        action="log.update",
        entity_type=layout.type,
        entity_id=str(index),
        metadata={"changes": changes},
    )
    return entry


def delete_entry(storage: JsonStorage, log_type: str, index: int) -> dict[str, Any]:
    layout = log_layout(log_type)
    entries = read_log(storage, log_type)
    _check_index(layout, entries, index)

    removed = entries.pop(index)
    _write_log(storage, log_type, entries)

    record_event(
        storage,
        action="log.delete",
        entity_type=layout.type,
        entity_id=str(index),
        metadata={"title": removed.get("title")},
    )
    return removed


def ensure_logs(storage: JsonStorage) -> list[str]:
    """Create empty log files for every type that has none. Returns the paths created."""
    storage.ensure_folder(LOGS_DIR)
    created = []
    for log_type in LOG_TYPES:
        path = log_path(log_type)
        if not storage.exists(path):
            storage.write_json(path, [])
            created.append(path)
    return created
