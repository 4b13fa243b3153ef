from __future__ import annotations

from flask import Blueprint, abort, jsonify, request

from app.pm2.datastore import json_storage
from app.pm2.modules.logs.models import LOG_LAYOUTS
from app.pm2.modules.logs.service import add_entry, delete_entry, list_entries, log_layout, update_entry

bp = Blueprint("logs", __name__)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="JSON object body required.")
    return payload


@bp.get("/")
def log_types():
    return jsonify(
        {
            "types": [
                {"type": s.type, "fields": list(s.fields), "statuses": list(s.statuses)}
                for s in LOG_LAYOUTS.values()
            ]
        }
    )


@bp.get("/<log_type>")
def log_list(log_type: str):
    sort_key = (request.args.get("sort") or "").strip() or None
    descending = (request.args.get("dir") or "asc").lower() == "desc"
    entries = list_entries(json_storage(), log_type, sort_key=sort_key, descending=descending)
    return jsonify({"type": log_layout(log_type).type, "entries": entries})


@bp.post("/<log_type>")
def log_create(log_type: str):
    entry = add_entry(json_storage(), log_type, _payload())
    return jsonify(entry), 201


@bp.put("/<log_type>/<int:index>")
def log_update(log_type: str, index: int):
    entry = update_entry(json_storage(), log_type, index, _payload())
    return jsonify(entry)


@bp.delete("/<log_type>/<int:index>")
def log_delete(log_type: str, index: int):
    removed = delete_entry(json_storage(), log_type, index)
    return jsonify({"deleted": removed})
