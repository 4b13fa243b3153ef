from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from app.pm2.constants import ARTEFACTS_PATH, SAVE_ERROR, SAVE_IDLE, SAVE_SAVING, SAVE_SUCCESS
from app.pm2.modules.artefacts.models import (
    APPROVED_MODIFIED_LABEL,
    EDITABLE_APPROVAL_FIELDS,
    ApprovalRecord,
    ArtefactDescriptor,
    ArtefactStatus,
    GovernanceEvent,
    InvalidTransitionError,
    UnknownFieldError,
)
from app.pm2.modules.artefacts.templates import ContentTemplate, normalize_path, template_for
from app.pm2.storage import JsonStorage, StorageError
from app.pm2.utils import deep_copy_json, isoformat, json_equal, utc_now

logger = logging.getLogger(__name__)

Listener = Callable[[GovernanceEvent], None]


# ---------- Status rules ----------


def _populated(value: Any, default: Any) -> bool:
    if json_equal(value, default):
        return False
    if value is None:
        return False
    if isinstance(value, bool):
        return value != (default if isinstance(default, bool) else False)
    if isinstance(value, str):
        return len(value) > 0
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, Mapping):
        d = default if isinstance(default, Mapping) else {}
        return any(_populated(v, d.get(k)) for k, v in value.items())
    if isinstance(value, list):
        return any(_populated(v, None) for v in value)
    return True


def has_content(content: Mapping[str, Any] | None, defaults: Mapping[str, Any] | None = None) -> bool:
    """
    True when any field holds a value that differs from the template default
    and is itself non-empty (recursively for objects and arrays).
    """
    if not content:
        return False
    return _populated(dict(content), dict(defaults or {}))


def display_status(status: str, modified_after_approval: bool) -> str:
    if status == ArtefactStatus.APPROVED and modified_after_approval:
        return APPROVED_MODIFIED_LABEL
    return status


# ---------- Registry file helpers ----------


def read_artefacts(storage: JsonStorage, path: str = ARTEFACTS_PATH) -> list[dict[str, Any]]:
    entries = storage.read_json(path, [])
    if not isinstance(entries, list):
        raise StorageError(f"{path} must hold a JSON array")
    return entries


def upsert_artefact(storage: JsonStorage, record: dict[str, Any], path: str = ARTEFACTS_PATH) -> None:
    folder = posixpath.dirname(path)
    if folder:
        storage.ensure_folder(folder)
    entries = read_artefacts(storage, path)
    for i, entry in enumerate(entries):
        if isinstance(entry, dict) and entry.get("id") == record["id"]:
            entries[i] = record
            break
    else:
        entries.append(record)
    storage.write_json(path, entries)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# ---------- Controller ----------


class GovernanceController:
    """
    Owns the in-memory content and approval record of one artefact.

    Status is derived, never stored independently: Approved iff the approval
    record is approved, otherwise In Progress / Not Started from the content.
    The modified-after-approval flag is computed at save time against the
    content snapshot taken when approval was last granted.
    """

    def __init__(
        self,
        descriptor: ArtefactDescriptor,
        storage: JsonStorage,
        *,
        template: ContentTemplate | None = None,
        clock: Callable[[], datetime] = utc_now,
        path: str = ARTEFACTS_PATH,
    ) -> None:
        self.descriptor = descriptor
        self.template = template or template_for(descriptor.id, descriptor.name)
        self._storage = storage
        self._clock = clock
        self._path = path
        self._listeners: list[Listener] = []

        # Pre-filled values count as untouched until edited.
        self._initial = self.template.initial_content(descriptor.name, clock().date().isoformat())
        self._content: dict[str, Any] = deep_copy_json(self._initial)
        self._approval = ApprovalRecord()
        # None while approved means the approved content is unknown (hydrated as modified).
        self._approved_snapshot: dict[str, Any] | None = None
        self._modified = False
        self._last_updated: str | None = None
        self._baseline = self._snapshot()
        self._save_status = SAVE_IDLE
        self._last_error: str | None = None
        self._show_banner = False

    # ----- observable state -----

    @property
    def artefact_id(self) -> str:
        return self.descriptor.id

    @property
    def content(self) -> dict[str, Any]:
        return deep_copy_json(self._content)

    @property
    def approval(self) -> ApprovalRecord:
        return ApprovalRecord.from_dict(self._approval.to_dict())

    @property
    def status(self) -> str:
        return self._compute_status()[0]

    @property
    def modified_after_approval(self) -> bool:
        return self._approval.is_approved and self._modified

    @property
    def display_status(self) -> str:
        return display_status(self.status, self.modified_after_approval)

    @property
    def is_dirty(self) -> bool:
        return not json_equal(self._snapshot(), self._baseline)

    @property
    def save_status(self) -> str:
        return self._save_status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def last_updated(self) -> str | None:
        return self._last_updated

    @property
    def show_modified_banner(self) -> bool:
        return self._show_banner

    @property
    def can_reapprove(self) -> bool:
        return self.status == ArtefactStatus.APPROVED and self.modified_after_approval

    def state(self) -> dict[str, Any]:
        return {
            **self.descriptor.to_dict(self.status),
            "displayStatus": self.display_status,
            "modifiedAfterApproval": self.modified_after_approval,
            "lastUpdated": self._last_updated,
            "isDirty": self.is_dirty,
            "saveStatus": self._save_status,
            "lastError": self._last_error,
            "showModifiedBanner": self._show_banner,
            "canReapprove": self.can_reapprove,
            "content": self.content,
            "approval": self._approval.to_dict(),
        }

    def to_record(self) -> dict[str, Any]:
        """Persisted shape of the current in-memory state."""
        return {
            **self.descriptor.to_dict(self.status),
            "modifiedAfterApproval": self.modified_after_approval,
            "lastUpdated": self._last_updated,
            "content": self.content,
            "approval": self._approval.to_dict(),
        }

    # ----- subscriptions -----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: str) -> None:
        if not self._listeners:
            return
        event = GovernanceEvent(type=event_type, artefact_id=self.artefact_id, state=self.state())
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s for artefact %s", event_type, self.artefact_id)

    # ----- load -----

    def load(self, persisted: Mapping[str, Any] | None) -> None:
        persisted = persisted or {}
        raw_content = persisted.get("content") or {}
        if not isinstance(raw_content, Mapping):
            logger.warning("Artefact %s has non-object content; using defaults", self.artefact_id)
            raw_content = {}
        raw_content = dict(raw_content)
        # Older files keep the approval record inside content.
        nested_approval = raw_content.pop("approval", None)
        raw_approval = persisted.get("approval") or nested_approval
        if raw_approval is not None and not isinstance(raw_approval, Mapping):
            logger.warning("Artefact %s has a malformed approval record; ignoring it", self.artefact_id)
            raw_approval = None

        self._content = self.template.normalize(raw_content, self._initial)
        self._approval = ApprovalRecord.from_dict(dict(raw_approval) if raw_approval else None)

        persisted_modified = (
            persisted.get("status") == ArtefactStatus.APPROVED and bool(persisted.get("modifiedAfterApproval"))
        )
        if self._approval.is_approved:
            self._modified = persisted_modified
            self._approved_snapshot = None if persisted_modified else deep_copy_json(self._content)
        else:
            self._modified = False
            self._approved_snapshot = None

        self._last_updated = persisted.get("lastUpdated")
        self._show_banner = self._approval.is_approved and persisted_modified
        self._baseline = self._snapshot()
        self._save_status = SAVE_IDLE
        self._last_error = None
        self._emit("loaded")

    # ----- edits -----

    def update_field(self, path: str | Sequence[Any], value: Any) -> None:
        self._set_path(normalize_path(path), value)
        self._content_changed()

    def update_content(self, fields: Mapping[str, Any]) -> None:
        parts = [(normalize_path(k), v) for k, v in fields.items()]
        for p, v in parts:
            self.template.validate(p, v)
        for p, v in parts:
            self._set_path(p, v)
        self._content_changed()

    def update_approval_field(self, field: str, value: str) -> None:
        if field not in EDITABLE_APPROVAL_FIELDS:
            raise UnknownFieldError(f"Approval field {field!r} cannot be edited directly")
        attr = {"approverName": "approver_name", "approvalDate": "approval_date", "signature": "signature"}[field]
        setattr(self._approval, attr, "" if value is None else str(value))
        self._content_changed()

    def dismiss_banner(self) -> None:
        self._show_banner = False
        self._emit("changed")

    def _set_path(self, parts: tuple[str, ...], value: Any) -> None:
        self.template.validate(parts, value)
        target = self._content
        for key in parts[:-1]:
            nxt = target.get(key)
            if nxt is None:
                nxt = {}
                target[key] = nxt
            elif not isinstance(nxt, dict):
                raise UnknownFieldError(f"Cannot set {'/'.join(parts)!r}: {key!r} is not an object")
            target = nxt
        target[parts[-1]] = deep_copy_json(value)

    def _content_changed(self) -> None:
        if self._save_status == SAVE_SUCCESS:
            self._save_status = SAVE_IDLE
        self._emit("changed")

    # ----- approval transitions -----

    def toggle_approval(self) -> bool:
        """
        Grant or revoke approval. Granting saves immediately and returns the
        save result; revoking leaves the change unsaved and returns False.
        """
        if not self._approval.is_approved:
            self._approval.is_approved = True
            self._approval.timestamp = self._next_timestamp()
            self._approved_snapshot = deep_copy_json(self._content)
            self._modified = False
            self._show_banner = False
            self._emit("approved")
            return self.save(force=True)

        self._approval.is_approved = False
        self._approval.timestamp = None
        self._approved_snapshot = None
        self._modified = False
        self._show_banner = False
        self._emit("revoked")
        return False

    def reapprove(self) -> bool:
        if not self.can_reapprove:
            raise InvalidTransitionError(
                f"{self.descriptor.name} can only be re-approved while approved and modified after approval"
            )
        self._approval.timestamp = self._next_timestamp()
        self._approved_snapshot = deep_copy_json(self._content)
        self._modified = False
        self._show_banner = False
        self._emit("reapproved")
        return self.save(force=True)

    def _next_timestamp(self) -> str:
        now = self._clock()
        prev = _parse_timestamp(self._approval.timestamp)
        # Approval timestamps never move backwards or repeat.
        if prev is not None and prev.tzinfo is not None and now.tzinfo is not None and now <= prev:
            now = prev + timedelta(microseconds=1)
        return isoformat(now) or ""

    # ----- save -----

    def _compute_status(self) -> tuple[str, bool]:
        if self._approval.is_approved:
            if self._approved_snapshot is None:
                return ArtefactStatus.APPROVED, True
            return ArtefactStatus.APPROVED, not json_equal(self._content, self._approved_snapshot)
        if has_content(self._content, self._initial):
            return ArtefactStatus.IN_PROGRESS, False
        return ArtefactStatus.NOT_STARTED, False

    def save(self, *, force: bool = False) -> bool:
        """
        Persist the artefact. Returns True when a write happened and
        succeeded; False for a no-op or a failed write (see save_status).
        """
        if not force and not self.is_dirty and self._save_status != SAVE_ERROR:
            return False

        self._save_status = SAVE_SAVING
        self._emit("saving")

        status, modified = self._compute_status()
        now = isoformat(self._clock())
        snapshot = self._snapshot()
        record = {
            **self.descriptor.to_dict(status),
            "modifiedAfterApproval": modified,
            "lastUpdated": now,
            "content": snapshot["content"],
            "approval": snapshot["approval"],
        }
        try:
            upsert_artefact(self._storage, record, self._path)
        except StorageError as e:
            logger.error("Save failed for artefact %s: %s", self.artefact_id, e)
            self._last_error = str(e)
            self._save_status = SAVE_ERROR
            self._emit("save_failed")
            return False

        self._modified = modified
        self._last_updated = now
        self._baseline = snapshot
        self._last_error = None
        self._save_status = SAVE_SUCCESS
        self._show_banner = status == ArtefactStatus.APPROVED and modified
        logger.info("Saved artefact %s (status=%s, modified=%s)", self.artefact_id, status, modified)
        self._emit("saved")
        return True

    def _snapshot(self) -> dict[str, Any]:
        return {"content": deep_copy_json(self._content), "approval": self._approval.to_dict()}
