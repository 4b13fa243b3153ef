from __future__ import annotations

import io

from flask import Blueprint, abort, current_app, jsonify, request, send_file

from app.pm2.audit import list_events, record_event
from app.pm2.datastore import artefact_registry, json_storage
from app.pm2.modules.artefacts.export import DOCX_MIMETYPE, export_artefact_docx
from app.pm2.modules.artefacts.service import GovernanceController

bp = Blueprint("artefacts", __name__)


def _controller(artefact_id: str) -> GovernanceController:
    return artefact_registry().controller(artefact_id)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="JSON object body required.")
    return payload


def _audit(ctrl: GovernanceController, action: str, **metadata) -> None:
    record_event(
        json_storage(),
        action=action,
        entity_type="Artefact",
        entity_id=ctrl.artefact_id,
        metadata={"status": ctrl.status, "modifiedAfterApproval": ctrl.modified_after_approval, **metadata},
    )


# ---------- Read ----------
@bp.get("/")
def list_artefacts():
    phase = (request.args.get("phase") or "").strip() or None
    return jsonify({"artefacts": artefact_registry().list_artefacts(phase)})


@bp.get("/<artefact_id>")
def artefact_detail(artefact_id: str):
    return jsonify(_controller(artefact_id).state())


@bp.get("/<artefact_id>/audit")
def artefact_audit(artefact_id: str):
    ctrl = _controller(artefact_id)
    return jsonify({"events": list_events(json_storage(), entity_id=ctrl.artefact_id)})


# ---------- Edit ----------
@bp.patch("/<artefact_id>/content")
def update_content(artefact_id: str):
    ctrl = _controller(artefact_id)
    payload = _payload()

    if isinstance(payload.get("fields"), dict):
        ctrl.update_content(payload["fields"])
    elif "path" in payload:
        ctrl.update_field(payload["path"], payload.get("value"))
    else:
        abort(400, description="Provide either 'fields' or 'path' and 'value'.")
    return jsonify(ctrl.state())


@bp.patch("/<artefact_id>/approval")
def update_approval(artefact_id: str):
    ctrl = _controller(artefact_id)
    for field, value in _payload().items():
        ctrl.update_approval_field(field, value)
    return jsonify(ctrl.state())


@bp.post("/<artefact_id>/banner/dismiss")
def dismiss_banner(artefact_id: str):
    ctrl = _controller(artefact_id)
    ctrl.dismiss_banner()
    return jsonify(ctrl.state())


# ---------- Governance transitions ----------
@bp.post("/<artefact_id>/approval/toggle")
def toggle_approval(artefact_id: str):
    ctrl = _controller(artefact_id)
    was_approved = ctrl.approval.is_approved
    saved = ctrl.toggle_approval()
    if was_approved:
        _audit(ctrl, "artefact.revoke")
    else:
        _audit(ctrl, "artefact.approve", saved=saved, timestamp=ctrl.approval.timestamp)
    return jsonify({**ctrl.state(), "saved": saved})


@bp.post("/<artefact_id>/reapprove")
def reapprove(artefact_id: str):
    ctrl = _controller(artefact_id)
    saved = ctrl.reapprove()
    _audit(ctrl, "artefact.reapprove", saved=saved, timestamp=ctrl.approval.timestamp)
    return jsonify({**ctrl.state(), "saved": saved})


@bp.post("/<artefact_id>/save")
def save_artefact(artefact_id: str):
    ctrl = _controller(artefact_id)
    saved = ctrl.save()
    if saved:
        _audit(ctrl, "artefact.save")
    elif ctrl.save_status == "error":
        current_app.logger.warning("Save of %s failed: %s", artefact_id, ctrl.last_error)
    return jsonify({**ctrl.state(), "saved": saved})


# ---------- Export ----------
@bp.get("/<artefact_id>/export")
def export_artefact(artefact_id: str):
    ctrl = _controller(artefact_id)
    filename, data = export_artefact_docx(ctrl.artefact_id, ctrl.content, ctrl.approval.to_dict())
    return send_file(
        io.BytesIO(data),
        mimetype=DOCX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
        max_age=0,
    )
