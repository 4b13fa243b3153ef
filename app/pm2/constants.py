"""
Central constants for the PM² tracker.
"""
from __future__ import annotations

PHASES = ("Initiating", "Planning", "Executing", "Closing")

# Persisted file layout (relative to the data root)
DATA_DIR = "data"
ARTEFACTS_PATH = "data/artefacts.json"
LOGS_DIR = "data/logs"
INITIATING_DIR = "data/initiating"
STAKEHOLDERS_PATH = "data/initiating/stakeholders.json"
AUDIT_DIR = "data/audit"
AUDIT_PATH = "data/audit/events.json"

# Save lifecycle reported to callers
SAVE_IDLE = "idle"
SAVE_SAVING = "saving"
SAVE_SUCCESS = "success"
SAVE_ERROR = "error"
