import logging
import uuid
from typing import Any

from app.pm2.constants import AUDIT_DIR, AUDIT_PATH
from app.pm2.storage import JsonStorage, StorageError
from app.pm2.utils import isoformat, utc_now

logger = logging.getLogger(__name__)


def record_event(
    storage: JsonStorage,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """
    Append-only audit event helper.

    The trail is advisory: a failed write is logged and the event dropped,
    the caller's operation is never failed because of it.
    """
    ev = {
        "id": uuid.uuid4().hex,
        "createdAt": isoformat(utc_now()),
        "action": action,
        "entityType": entity_type,
        "entityId": entity_id,
        "reason": reason,
        "metadata": metadata or {},
    }
    try:
        storage.ensure_folder(AUDIT_DIR)
        events = storage.read_json(AUDIT_PATH, [])
        if not isinstance(events, list):
            logger.warning("Audit trail at %s is not a list; starting a new one", AUDIT_PATH)
            events = []
        events.append(ev)
        storage.write_json(AUDIT_PATH, events)
    except StorageError as e:
        logger.error("Audit event %s for %s/%s not recorded: %s", action, entity_type, entity_id, e)
        return None
    return ev


def list_events(storage: JsonStorage, *, entity_id: str | None = None) -> list[dict[str, Any]]:
    try:
        events = storage.read_json(AUDIT_PATH, [])
    except StorageError as e:
        logger.warning("Audit trail unreadable: %s", e)
        return []
    if not isinstance(events, list):
        return []
    if entity_id is not None:
        events = [e for e in events if e.get("entityId") == entity_id]
    return events
