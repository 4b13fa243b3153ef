from __future__ import annotations

from typing import Any

from app.pm2.constants import PHASES
from app.pm2.modules.artefacts.registry import ArtefactRegistry
from app.pm2.modules.stakeholders.service import StakeholderIdentification

INITIATING_ARTEFACTS = (
    "project-initiation-request",
    "stakeholder-matrix",
    "business-case",
    "project-charter",
    "initiating-phase-exit-checklist",
)
PHASE_EXIT_CHECKLIST_ID = "initiating-phase-exit-checklist"
STAKEHOLDER_ACTIVITY_ID = "initial-stakeholder-identification"


def phase_overview(registry: ArtefactRegistry) -> list[dict[str, Any]]:
    grouped = registry.by_phase()
    phases = list(PHASES) + [p for p in grouped if p not in PHASES]
    return [{"phase": p, "artefacts": grouped.get(p, [])} for p in phases]


def _saved_approval(entry: dict[str, Any]) -> bool:
    content = entry.get("content")
    approval = entry.get("approval") or (content.get("approval") if isinstance(content, dict) else None)
    return isinstance(approval, dict) and bool(approval.get("isApproved"))


def initiating_overview(registry: ArtefactRegistry, stakeholders: StakeholderIdentification) -> dict[str, Any]:
    """
    The Initiating phase page: its artefacts, the stakeholder activity and
    the gate. The gate is signed off once an approval of the exit
    checklist has been saved.
    """
    known = {a["id"]: a for a in registry.list_artefacts("Initiating")}
    artefacts = []
    for artefact_id in INITIATING_ARTEFACTS:
        item = known.pop(artefact_id, None)
        if item is None:
            name = " ".join(w.capitalize() for w in artefact_id.split("-"))
            item = {"id": artefact_id, "name": name, "phase": "Initiating", "status": "Not Started",
                    "modifiedAfterApproval": False, "displayStatus": "Not Started", "lastUpdated": None}
        artefacts.append(item)
    artefacts.extend(known.values())

    checklist = registry.controller(PHASE_EXIT_CHECKLIST_ID)
    signed_off = _saved_approval(registry.get(PHASE_EXIT_CHECKLIST_ID))
    return {
        "phase": "Initiating",
        "activities": [
            {
                "id": STAKEHOLDER_ACTIVITY_ID,
                "name": "Initial Stakeholder Identification",
                "status": stakeholders.status(),
            }
        ],
        "artefacts": artefacts,
        "checklistStatus": checklist.display_status,
        "signedOff": signed_off,
        "gate": "Ready (Signed Off)" if signed_off else "Pending",
    }
