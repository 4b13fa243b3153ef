from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable
from datetime import datetime
from typing import Any

from app.pm2.constants import ARTEFACTS_PATH, PHASES
from app.pm2.modules.artefacts.models import (
    DEFAULT_ARTEFACTS,
    ArtefactDescriptor,
    ArtefactStatus,
    UnknownArtefactError,
)
from app.pm2.modules.artefacts.service import GovernanceController, display_status, read_artefacts
from app.pm2.storage import JsonStorage, StorageError
from app.pm2.utils import utc_now

logger = logging.getLogger(__name__)


def _summary(entry: dict[str, Any]) -> dict[str, Any]:
    status = entry.get("status") or ArtefactStatus.NOT_STARTED
    modified = status == ArtefactStatus.APPROVED and bool(entry.get("modifiedAfterApproval"))
    return {
        "id": entry.get("id"),
        "name": entry.get("name"),
        "phase": entry.get("phase"),
        "status": status,
        "modifiedAfterApproval": modified,
        "displayStatus": display_status(status, modified),
        "lastUpdated": entry.get("lastUpdated"),
    }


class ArtefactRegistry:
    """
    The artefact list stored in data/artefacts.json plus one live
    GovernanceController per opened artefact.
    """

    def __init__(
        self,
        storage: JsonStorage,
        *,
        clock: Callable[[], datetime] = utc_now,
        path: str = ARTEFACTS_PATH,
    ) -> None:
        self.storage = storage
        self._clock = clock
        self._path = path
        self._controllers: dict[str, GovernanceController] = {}

    def load(self) -> list[dict[str, Any]]:
        """
        Read the registry. An absent or empty file is seeded with the default
        artefact list; an unreadable one, or one without a usable entry, falls
        back to the defaults in memory and is left untouched on disk.
        """
        defaults = [d.to_dict() for d in DEFAULT_ARTEFACTS]
        try:
            folder = posixpath.dirname(self._path)
            if folder:
                self.storage.ensure_folder(folder)
            entries = read_artefacts(self.storage, self._path)
        except StorageError as e:
            logger.warning("Artefact registry unreadable, using defaults: %s", e)
            return defaults

        if not entries:
            try:
                self.storage.write_json(self._path, defaults)
            except StorageError as e:
                logger.warning("Could not seed artefact registry: %s", e)
            return defaults

        entries = [e for e in entries if isinstance(e, dict) and e.get("id")]
        if not entries:
            logger.warning("Artefact registry holds no usable entries, using defaults")
            return defaults

        # Artefacts introduced after the file was written appear unsaved.
        known = {e["id"] for e in entries}
        entries.extend(d for d in defaults if d["id"] not in known)
        return entries

    def list_artefacts(self, phase: str | None = None) -> list[dict[str, Any]]:
        items = [_summary(e) for e in self.load()]
        if phase:
            items = [i for i in items if i["phase"] == phase]
        return items

    def by_phase(self) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {p: [] for p in PHASES}
        for item in self.list_artefacts():
            grouped.setdefault(item["phase"] or "Unassigned", []).append(item)
        return grouped

    def get(self, artefact_id: str) -> dict[str, Any]:
        for entry in self.load():
            if entry.get("id") == artefact_id:
                return entry
        raise UnknownArtefactError(f"Artefact {artefact_id!r} not found")

    def descriptor(self, artefact_id: str) -> ArtefactDescriptor:
        entry = self.get(artefact_id)
        return ArtefactDescriptor(
            id=entry["id"],
            name=entry.get("name") or entry["id"],
            phase=entry.get("phase") or "",
        )

    def controller(self, artefact_id: str) -> GovernanceController:
        ctrl = self._controllers.get(artefact_id)
        if ctrl is not None:
            return ctrl
        entry = self.get(artefact_id)
        ctrl = GovernanceController(self.descriptor(artefact_id), self.storage, clock=self._clock, path=self._path)
        ctrl.load(entry)
        self._controllers[artefact_id] = ctrl
        return ctrl

    def forget(self, artefact_id: str) -> None:
        """Drop the live controller so the next access re-reads the file."""
        self._controllers.pop(artefact_id, None)
