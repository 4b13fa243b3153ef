from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ArtefactStatus:
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    APPROVED = "Approved"

    ALL = (NOT_STARTED, IN_PROGRESS, APPROVED)


# Display-only composite of Approved + modifiedAfterApproval.
APPROVED_MODIFIED_LABEL = "Approved — Modified"

# Approver fields editable directly; isApproved/timestamp move only through transitions.
EDITABLE_APPROVAL_FIELDS = ("approverName", "approvalDate", "signature")


@dataclass
class ApprovalRecord:
    approver_name: str = ""
    approval_date: str = ""  # YYYY-MM-DD as entered, may be blank
    signature: str = ""
    is_approved: bool = False
    timestamp: str | None = None  # ISO-8601, set when approval turns on

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "ApprovalRecord":
        raw = raw or {}
        return cls(
            approver_name=str(raw.get("approverName") or ""),
            approval_date=str(raw.get("approvalDate") or ""),
            signature=str(raw.get("signature") or ""),
            is_approved=bool(raw.get("isApproved")),
            timestamp=raw.get("timestamp") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "approverName": self.approver_name,
            "approvalDate": self.approval_date,
            "signature": self.signature,
            "isApproved": self.is_approved,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ArtefactDescriptor:
    id: str
    name: str
    phase: str

    def to_dict(self, status: str = ArtefactStatus.NOT_STARTED) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "phase": self.phase, "status": status}


DEFAULT_ARTEFACTS: tuple[ArtefactDescriptor, ...] = (
    ArtefactDescriptor("project-initiation-request", "Project Initiation Request", "Initiating"),
    ArtefactDescriptor("business-case", "Business Case", "Initiating"),
    ArtefactDescriptor("project-charter", "Project Charter", "Initiating"),
    ArtefactDescriptor("stakeholder-matrix", "Stakeholder Matrix", "Initiating"),
    ArtefactDescriptor("initiating-phase-exit-checklist", "Initiating Phase Exit Checklist", "Initiating"),
    ArtefactDescriptor("project-work-plan", "Project Work Plan", "Planning"),
    ArtefactDescriptor("requirements-doc", "Requirements Document", "Planning"),
    ArtefactDescriptor("risk-log", "Risk Log", "Planning"),
    ArtefactDescriptor("quality-plan", "Quality Plan", "Planning"),
    ArtefactDescriptor("comm-plan", "Communication Plan", "Planning"),
    ArtefactDescriptor("procurement-plan", "Procurement Plan", "Planning"),
    ArtefactDescriptor("project-handbook", "Project Handbook", "Planning"),
    ArtefactDescriptor("status-reports", "Status Reports", "Executing"),
    ArtefactDescriptor("deliverables", "Deliverables", "Executing"),
    ArtefactDescriptor("end-project-report", "End-of-Project Report", "Closing"),
    ArtefactDescriptor("lessons-learned", "Lessons Learned", "Closing"),
)


@dataclass
class GovernanceEvent:
    """Transition notice delivered synchronously to controller subscribers."""

    type: str
    artefact_id: str
    state: dict[str, Any] = field(default_factory=dict)


class GovernanceError(Exception):
    pass


class InvalidTransitionError(GovernanceError):
    pass


class UnknownFieldError(GovernanceError, ValueError):
    pass


class UnknownArtefactError(GovernanceError, LookupError):
    pass
