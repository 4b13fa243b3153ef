from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request

from app.pm2.datastore import stakeholder_activity

bp = Blueprint("stakeholders", __name__)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="JSON object body required.")
    return payload


@bp.get("/stakeholders")
def stakeholders_detail():
    return jsonify(stakeholder_activity().state())


@bp.post("/stakeholders/reload")
def stakeholders_reload():
    activity = stakeholder_activity()
    activity.load()
    return jsonify(activity.state())


@bp.patch("/stakeholders/core/<section>")
def stakeholders_update_core(section: str):
    activity = stakeholder_activity()
    for field, value in _payload().items():
        activity.update_core(section, field, value)
    return jsonify(activity.state())


@bp.post("/stakeholders/additional")
def stakeholders_add():
    activity = stakeholder_activity()
    row = activity.add_stakeholder()
    payload = request.get_json(silent=True)
    for field, value in (payload if isinstance(payload, dict) else {}).items():
        activity.update_stakeholder(row["id"], field, value)
    return jsonify(activity.state()), 201


@bp.patch("/stakeholders/additional/<stakeholder_id>")
def stakeholders_update(stakeholder_id: str):
    activity = stakeholder_activity()
    for field, value in _payload().items():
        activity.update_stakeholder(stakeholder_id, field, value)
    return jsonify(activity.state())


@bp.delete("/stakeholders/additional/<stakeholder_id>")
def stakeholders_remove(stakeholder_id: str):
    activity = stakeholder_activity()
    activity.remove_stakeholder(stakeholder_id)
    return jsonify(activity.state())


@bp.post("/stakeholders/save")
def stakeholders_save():
    activity = stakeholder_activity()
    saved = activity.save()
    if not saved and activity.save_status == "error":
        current_app.logger.warning("Stakeholder save failed: %s", activity.last_error)
    return jsonify({**activity.state(), "saved": saved})
