from flask import Blueprint, jsonify

from app.pm2.constants import PHASES

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return jsonify({"app": "pm2-tracker", "phases": list(PHASES)})


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for probes. No storage access, minimal overhead.
    """
    return "ok", 200
