from __future__ import annotations

from flask import Blueprint, jsonify

from app.pm2.datastore import artefact_registry, stakeholder_activity
from app.pm2.modules.lifecycle.service import initiating_overview, phase_overview

bp = Blueprint("lifecycle", __name__)


@bp.get("/")
def lifecycle_overview():
    return jsonify({"phases": phase_overview(artefact_registry())})


@bp.get("/initiating")
def lifecycle_initiating():
    return jsonify(initiating_overview(artefact_registry(), stakeholder_activity()))
