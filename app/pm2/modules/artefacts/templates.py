"""
Content templates, one per artefact kind.

A template owns the explicit field set of its kind, the default content used
for new artefacts and for filling fields missing from older saved files, and
the validation of field updates.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from app.pm2.modules.artefacts.models import UnknownFieldError
from app.pm2.utils import deep_copy_json

FieldPath = tuple[str, ...]


def normalize_path(path: str | Sequence[Any]) -> FieldPath:
    if isinstance(path, str):
        parts: FieldPath = (path,)
    else:
        parts = tuple(str(p) for p in path)
    if not parts or any(p == "" for p in parts):
        raise UnknownFieldError(f"Invalid field path: {path!r}")
    return parts


class ContentTemplate:
    kind: str = "freeform"
    title: str = ""

    def default_content(self) -> dict[str, Any]:
        return {}

    def initial_content(self, name: str = "", today: str = "") -> dict[str, Any]:
        """Content of a new artefact: the defaults plus any pre-filled values."""
        return self.default_content()

    def normalize(self, content: dict[str, Any] | None, base: dict[str, Any] | None = None) -> dict[str, Any]:
        merged = deep_copy_json(base) if base is not None else self.default_content()
        merged.update(deep_copy_json(content or {}))
        return merged

    def validate(self, path: FieldPath, value: Any) -> None:
        return None


@dataclass(frozen=True)
class FormSection:
    id: str
    title: str
    fields: tuple[str, ...] = ()

    @property
    def keys(self) -> tuple[str, ...]:
        # A section without fields is itself a single text field keyed by its id.
        return self.fields or (self.id,)


class FormTemplate(ContentTemplate):
    kind = "form"

    def __init__(
        self,
        title: str,
        sections: Sequence[FormSection],
        export_prefix: str,
        prefill: Callable[[str, str], dict[str, str]] | None = None,
    ) -> None:
        self.title = title
        self.sections = tuple(sections)
        self.export_prefix = export_prefix
        self.prefill = prefill
        self.fields = tuple(k for s in self.sections for k in s.keys)

    def default_content(self) -> dict[str, Any]:
        return {k: "" for k in self.fields}

    def initial_content(self, name: str = "", today: str = "") -> dict[str, Any]:
        content = self.default_content()
        if self.prefill is not None:
            content.update(self.prefill(name, today))
        return content

    def validate(self, path: FieldPath, value: Any) -> None:
        if len(path) != 1 or path[0] not in self.fields:
            raise UnknownFieldError(f"{self.title} has no field {'/'.join(path)!r}")
        if value is not None and not isinstance(value, str):
            raise UnknownFieldError(f"{self.title} field {path[0]!r} takes text, got {type(value).__name__}")


ANSWER_OPTIONS = ("Yes", "Partially", "No", "Not Applicable")


class ChecklistTemplate(ContentTemplate):
    kind = "checklist"

    def __init__(self, title: str, questions: Sequence[str], default_answer: str = "No") -> None:
        self.title = title
        self.questions = tuple(questions)
        self.default_answer = default_answer

    def _default_entry(self) -> dict[str, str]:
        return {"answer": self.default_answer, "comment": ""}

    def default_content(self) -> dict[str, Any]:
        return {"answers": {str(i): self._default_entry() for i in range(len(self.questions))}}

    def normalize(self, content: dict[str, Any] | None, base: dict[str, Any] | None = None) -> dict[str, Any]:
        merged = super().normalize(content, base)
        current = merged.get("answers")
        if not isinstance(current, dict):
            current = {}
        clean: dict[str, dict[str, str]] = {}
        # Answers for questions no longer on the list are dropped.
        for i in range(len(self.questions)):
            entry = current.get(str(i))
            if isinstance(entry, dict):
                clean[str(i)] = {
                    "answer": str(entry.get("answer") or self.default_answer),
                    "comment": str(entry.get("comment") or ""),
                }
            else:
                clean[str(i)] = self._default_entry()
        merged["answers"] = clean
        return merged

    def validate(self, path: FieldPath, value: Any) -> None:
        if path[0] != "answers" or len(path) not in (2, 3):
            raise UnknownFieldError(f"{self.title} has no field {'/'.join(path)!r}")
        idx = path[1]
        if not idx.isdigit() or int(idx) >= len(self.questions):
            raise UnknownFieldError(f"{self.title} has no question {idx!r}")
        if len(path) == 2:
            if not isinstance(value, dict) or set(value) != {"answer", "comment"}:
                raise UnknownFieldError("Checklist entries take both answer and comment")
            self._check_answer(value["answer"])
            self._check_comment(value["comment"])
            return
        if path[2] == "answer":
            self._check_answer(value)
        elif path[2] == "comment":
            self._check_comment(value)
        else:
            raise UnknownFieldError(f"Checklist entries have no field {path[2]!r}")

    @staticmethod
    def _check_answer(value: Any) -> None:
        if value not in ANSWER_OPTIONS:
            raise UnknownFieldError(f"Answer must be one of: {', '.join(ANSWER_OPTIONS)}")

    @staticmethod
    def _check_comment(value: Any) -> None:
        if not isinstance(value, str):
            raise UnknownFieldError("Checklist comments take text")


class FreeformTemplate(ContentTemplate):
    kind = "freeform"

    def __init__(self, title: str = "") -> None:
        self.title = title


def _pir_prefill(name: str, today: str) -> dict[str, str]:
    return {"Project Name": name, "Date": today, "Version": "1.0"}


PROJECT_INITIATION_REQUEST = FormTemplate(
    "Project Initiation Request",
    [
        FormSection("projectInfo", "1. Project Information",
                    ("Project Name", "Date", "Version", "Project Owner", "Project Manager")),
        FormSection("background", "2. Background / Context"),
        FormSection("problem", "3. Problem / Need / Opportunity"),
        FormSection("benefits", "4. Expected Benefits & Success Criteria"),
        FormSection("objectives", "5. Project Objectives"),
        FormSection("scope", "6. Scope", ("In Scope", "Out of Scope")),
        FormSection("stakeholders", "7. Key Stakeholders"),
        FormSection("assumptions", "8. Assumptions"),
        FormSection("constraints", "9. Constraints"),
        FormSection("risks", "10. Initial Risks"),
        FormSection("effort", "11. Estimated Effort, Cost, and Timeline",
                    ("Estimated Effort (Man-days)", "Estimated Cost (€)", "Target Start Date", "Target End Date")),
        FormSection("approach", "12. Delivery Approach"),
        FormSection("dependencies", "13. Dependencies and Interfaces"),
        FormSection("alignment", "14. Strategic Alignment"),
    ],
    export_prefix="PIR",
    prefill=_pir_prefill,
)

BUSINESS_CASE_ALTERNATIVES = ("A", "B", "C")
SWOT_PARTS = ("Strengths", "Weaknesses", "Opportunities", "Threats")

BUSINESS_CASE = FormTemplate(
    "Business Case",
    [
        FormSection("justification", "1. Project Justification & Impact",
                    ("Business Justification", "Current Situation / Problem", "Impact of Doing Nothing")),
        FormSection("alignment", "2. Strategic Alignment",
                    ("Strategic Alignment", "Regulatory / Compliance Drivers")),
        FormSection(
            "alternatives",
            "3. Alternatives Considered",
            tuple(
                f"Alt{alt}_{part}"
                for alt in BUSINESS_CASE_ALTERNATIVES
                for part in ("Description", *SWOT_PARTS, "Qualitative")
            )
            + ("Chosen_Alternative", "Chosen_Rationale", "Chosen_Summary"),
        ),
        FormSection("solution", "4. Proposed Solution Overview",
                    ("Solution Overview", "High-level Scope", "Key Deliverables", "Expected Benefits")),
        FormSection("success_criteria", "5. Success Criteria",
                    ("Critical Success Criteria", "General Success Criteria")),
        FormSection("costs_benefits", "6. Costs & Benefits (High-Level)",
                    ("Cost Summary", "Benefit Summary", "Justification (Optional)")),
        FormSection("synergies", "7. Synergies and Interdependencies",
                    ("Dependencies", "Synergies", "Interdependencies")),
        FormSection("roadmap", "8. High-Level Roadmap",
                    ("Start Date", "Target Delivery Date", "Major Milestones")),
    ],
    export_prefix="Business_Case",
)

INITIATING_EXIT_QUESTIONS = (
    "Has a Project Initiation Request been documented and approved?",
    "Are the project context, scope, deliverables and expected outcomes documented?",
    "Has a Project Owner (PO) been identified?",
    "Are project benefits and success criteria documented?",
    "Are the benefits and success criteria measurable?",
    "Have all the key project stakeholders been identified?",
    "Are all the initial roles and responsibilities defined?",
    "Has the Project Steering Committee (PSC) been established?",
    "Have at least 4 alternative solutions been analysed (e.g. using a SWOT analysis)?",
    "Are major assumptions, constraints and risks identified?",
    "Have project synergies and dependencies been analysed?",
    "Has the project Total Cost of Ownership (TCO) been estimated in FTE and €?",
    "Are both requestor and solution provider costs included in the project TCO?",
    "Are project funding sources identified for each cost element?",
    "Have project savings been estimated in FTE and €?",
    "Has a Business Case been documented and approved by the Project Owner (PO)?",
    "Is there a Project Manager (PM) assigned to the project?",
    "Are requestor needs documented and linked to project deliverables?",
    "Is project roadmap (start and end dates) for major milestones and deliverables documented?",
    "Is project approach / methodology identified?",
    "Are Risk, Issue and Decision Logs setup?",
    "Have the identified risks an associated response strategy been approved?",
    "Are major resources needed to execute the project identified as well as requirements detailed?",
    "Have security, document management and data protection constraints been assessed?",
    "Has a Project Charter been documented and approved by the PSC?",
    "Is the project currently delivering to schedule?",
    "Is the budget allocated sufficient at this point of the project?",
)

INITIATING_PHASE_EXIT_CHECKLIST = ChecklistTemplate("Initiating Phase Exit Checklist", INITIATING_EXIT_QUESTIONS)

TEMPLATES: dict[str, ContentTemplate] = {
    "project-initiation-request": PROJECT_INITIATION_REQUEST,
    "business-case": BUSINESS_CASE,
    "initiating-phase-exit-checklist": INITIATING_PHASE_EXIT_CHECKLIST,
}


def template_for(artefact_id: str, name: str = "") -> ContentTemplate:
    return TEMPLATES.get(artefact_id) or FreeformTemplate(name or artefact_id)
