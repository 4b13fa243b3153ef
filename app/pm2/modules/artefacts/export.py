from __future__ import annotations

import html
import io
import re
from typing import Any

from docx import Document as DocxDocument
from werkzeug.utils import secure_filename

from app.pm2.modules.artefacts.models import GovernanceError
from app.pm2.modules.artefacts.templates import (
    BUSINESS_CASE_ALTERNATIVES,
    SWOT_PARTS,
    ChecklistTemplate,
    FormTemplate,
    template_for,
)

DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_BREAK_RE = re.compile(r"<\s*br\s*/?\s*>|</\s*(p|li|div|h[1-6])\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


class ExportError(GovernanceError):
    pass


def html_to_text(value: Any) -> str:
    """Rich-text fields are stored as HTML fragments; flatten to plain paragraphs."""
    text = str(value or "")
    text = _BREAK_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    lines = [ln.rstrip() for ln in text.splitlines()]
    return "\n".join(ln for ln in lines if ln.strip()).strip()


def _field(doc, label: str, value: Any) -> None:
    p = doc.add_paragraph()
    p.add_run(f"{label}:").bold = True
    body = html_to_text(value) or "N/A"
    doc.add_paragraph(body)


def _alternatives(doc, content: dict[str, Any]) -> None:
    for alt in BUSINESS_CASE_ALTERNATIVES:
        doc.add_heading(f"Alternative {alt}", level=2)
        _field(doc, "Description", content.get(f"Alt{alt}_Description"))
        doc.add_heading("SWOT Analysis", level=3)
        for part in SWOT_PARTS:
            _field(doc, part, content.get(f"Alt{alt}_{part}"))
        _field(doc, "Viability Assessment", content.get(f"Alt{alt}_Qualitative"))
    doc.add_heading("Chosen Alternative", level=2)
    _field(doc, "Choice", content.get("Chosen_Alternative"))
    _field(doc, "Rationale", content.get("Chosen_Rationale"))
    _field(doc, "Summary", content.get("Chosen_Summary"))


def _render_form(doc, template: FormTemplate, content: dict[str, Any]) -> None:
    for section in template.sections:
        doc.add_heading(section.title, level=1)
        if section.id == "alternatives" and template.export_prefix == "Business_Case":
            _alternatives(doc, content)
        elif section.fields:
            for f in section.fields:
                _field(doc, f, content.get(f))
        else:
            doc.add_paragraph(html_to_text(content.get(section.id)) or "N/A")


def _render_checklist(doc, template: ChecklistTemplate, content: dict[str, Any]) -> None:
    answers = content.get("answers") or {}
    table = doc.add_table(rows=1, cols=4)
    hdr = table.rows[0].cells
    for cell, label in zip(hdr, ("#", "Question", "Answer", "Comment")):
        cell.text = label
    for i, question in enumerate(template.questions):
        entry = answers.get(str(i)) or {}
        row = table.add_row().cells
        row[0].text = str(i + 1)
        row[1].text = question
        row[2].text = str(entry.get("answer") or template.default_answer)
        row[3].text = str(entry.get("comment") or "")


def _render_approval(doc, approval: dict[str, Any] | None) -> None:
    if not approval:
        return
    doc.add_heading("Approval", level=1)
    _field(doc, "Approver", approval.get("approverName"))
    _field(doc, "Approval Date", approval.get("approvalDate"))
    _field(doc, "Signature", approval.get("signature"))
    _field(doc, "Approved", "Yes" if approval.get("isApproved") else "No")


def export_filename(artefact_id: str, content: dict[str, Any]) -> str:
    template = template_for(artefact_id)
    if isinstance(template, FormTemplate):
        project = html_to_text(content.get("Project Name")) or "Project"
        version = html_to_text(content.get("Version")) or "1.0"
        name = f"{template.export_prefix}_{project}_v{version}.docx"
    else:
        name = f"{(template.title or artefact_id).replace(' ', '_')}.docx"
    return secure_filename(name) or "artefact.docx"


def export_artefact_docx(
    artefact_id: str,
    content: dict[str, Any],
    approval: dict[str, Any] | None = None,
) -> tuple[str, bytes]:
    """Render a form or checklist artefact to a Word document. Returns (filename, bytes)."""
    template = template_for(artefact_id)
    if not isinstance(template, (FormTemplate, ChecklistTemplate)):
        raise ExportError(f"Artefact {artefact_id!r} has no export layout")

    doc = DocxDocument()
    doc.add_heading(template.title, level=0)
    if isinstance(template, FormTemplate):
        _render_form(doc, template, content)
    else:
        _render_checklist(doc, template, content)
    _render_approval(doc, approval)

    bio = io.BytesIO()
    doc.save(bio)
    return export_filename(artefact_id, content), bio.getvalue()
