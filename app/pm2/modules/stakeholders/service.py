from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from app.pm2.audit import record_event
from app.pm2.constants import INITIATING_DIR, SAVE_ERROR, SAVE_IDLE, SAVE_SAVING, SAVE_SUCCESS, STAKEHOLDERS_PATH
from app.pm2.modules.stakeholders.models import (
    CORE_FIELDS,
    CORE_SECTIONS,
    STAKEHOLDER_FIELDS,
    ActivityStatus,
    StakeholderError,
    UnknownStakeholderError,
    default_record,
)
from app.pm2.storage import JsonStorage, StorageError
from app.pm2.utils import deep_copy_json, json_equal, utc_now

logger = logging.getLogger(__name__)


def merge_record(loaded: Mapping[str, Any] | None) -> dict[str, Any]:
    """Overlay a saved record on the defaults, one level deep for the core sections."""
    record = default_record()
    if not isinstance(loaded, Mapping):
        return record
    for key, value in loaded.items():
        if key in CORE_SECTIONS:
            if isinstance(value, Mapping):
                record[key].update(deep_copy_json(dict(value)))
        elif key == "additionalStakeholders":
            record[key] = [deep_copy_json(s) for s in (value or []) if isinstance(s, Mapping)]
        else:
            record[key] = deep_copy_json(value)
    return record


def activity_status(record: Mapping[str, Any]) -> str:
    def _name(section: str) -> str:
        return str((record.get(section) or {}).get("name") or "").strip()

    if _name("projectOwner") and _name("businessManager"):
        return ActivityStatus.COMPLETED
    any_core = any(
        str((record.get(section) or {}).get(f) or "").strip()
        for section in CORE_SECTIONS
        for f in CORE_FIELDS
    )
    if any_core or record.get("additionalStakeholders"):
        return ActivityStatus.IN_PROGRESS
    return ActivityStatus.NOT_STARTED


class StakeholderIdentification:
    """
    In-memory stakeholder record with the same dirty / save-status
    lifecycle as an artefact editor.
    """

    def __init__(
        self,
        storage: JsonStorage,
        *,
        clock: Callable[[], datetime] = utc_now,
        path: str = STAKEHOLDERS_PATH,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._path = path
        self._record = default_record()
        self._baseline = default_record()
        self._save_status = SAVE_IDLE
        self._last_error: str | None = None
        self._last_id = 0
        self.loaded = False

    @property
    def record(self) -> dict[str, Any]:
        return deep_copy_json(self._record)

    @property
    def is_dirty(self) -> bool:
        return not json_equal(self._record, self._baseline)

    @property
    def save_status(self) -> str:
        return self._save_status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def status(self) -> str:
        return activity_status(self._record)

    def state(self) -> dict[str, Any]:
        return {
            **self.record,
            "status": self.status(),
            "isDirty": self.is_dirty,
            "saveStatus": self._save_status,
            "lastError": self._last_error,
        }

    def load(self) -> dict[str, Any]:
        loaded: Any = None
        try:
            self._storage.ensure_folder(INITIATING_DIR)
            loaded = self._storage.read_json(self._path, None)
        except StorageError as e:
            logger.warning("Stakeholder record unreadable, starting empty: %s", e)
        self._record = merge_record(loaded)
        self._baseline = deep_copy_json(self._record)
        self._save_status = SAVE_IDLE
        self._last_error = None
        self.loaded = True
        return self.record

    def _changed(self) -> None:
        if self._save_status != SAVE_IDLE:
            self._save_status = SAVE_IDLE

    def update_core(self, section: str, field: str, value: Any) -> None:
        if section not in CORE_SECTIONS:
            raise StakeholderError(f"Unknown stakeholder section {section!r}")
        if field not in CORE_FIELDS:
            raise StakeholderError(f"Unknown field {field!r} for {section}")
        self._record[section][field] = "" if value is None else str(value)
        self._changed()

    def _new_id(self) -> int:
        # Millisecond ids, bumped so rows added in the same millisecond stay distinct.
        candidate = int(self._clock().timestamp() * 1000)
        existing = {str(s.get("id")) for s in self._record["additionalStakeholders"]}
        candidate = max(candidate, self._last_id + 1)
        while str(candidate) in existing:
            candidate += 1
        self._last_id = candidate
        return candidate

    def add_stakeholder(self) -> dict[str, Any]:
        row = {"id": self._new_id(), **{f: "" for f in STAKEHOLDER_FIELDS}}
        self._record["additionalStakeholders"].append(row)
        self._changed()
        return dict(row)

    def _find(self, stakeholder_id: Any) -> dict[str, Any]:
        for row in self._record["additionalStakeholders"]:
            if str(row.get("id")) == str(stakeholder_id):
                return row
        raise UnknownStakeholderError(f"Stakeholder {stakeholder_id!r} not found")

    def update_stakeholder(self, stakeholder_id: Any, field: str, value: Any) -> None:
        if field not in STAKEHOLDER_FIELDS:
            raise StakeholderError(f"Unknown stakeholder field {field!r}")
        self._find(stakeholder_id)[field] = "" if value is None else str(value)
        self._changed()

    def remove_stakeholder(self, stakeholder_id: Any) -> None:
        row = self._find(stakeholder_id)
        self._record["additionalStakeholders"].remove(row)
        self._changed()

    def save(self, *, force: bool = False) -> bool:
        if not force and not self.is_dirty and self._save_status != SAVE_ERROR:
            return False

        self._save_status = SAVE_SAVING
        snapshot = deep_copy_json(self._record)
        try:
            self._storage.ensure_folder(INITIATING_DIR)
            self._storage.write_json(self._path, snapshot)
        except StorageError as e:
            logger.error("Save failed for stakeholder record: %s", e)
            self._last_error = str(e)
            self._save_status = SAVE_ERROR
            return False

        self._baseline = snapshot
        self._last_error = None
        self._save_status = SAVE_SUCCESS
        logger.info("Saved stakeholder record (status=%s)", self.status())
        record_event(
            self._storage,
            action="stakeholders.save",
            entity_type="Activity",
            entity_id="initial-stakeholder-identification",
            metadata={"status": self.status(), "additional": len(snapshot["additionalStakeholders"])},
        )
        return True
