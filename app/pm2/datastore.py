from __future__ import annotations

from flask import Flask, current_app

from app.pm2.modules.artefacts.registry import ArtefactRegistry
from app.pm2.modules.stakeholders.service import StakeholderIdentification
from app.pm2.storage import JsonStorage, storage_from_config


def init_datastore(app: Flask, storage: JsonStorage | None = None) -> None:
    """
    One store, one artefact registry and one stakeholder activity per app.
    Controllers keep their in-memory state for the lifetime of the process.
    """
    storage = storage or storage_from_config(app.config)
    app.extensions["pm2_storage"] = storage
    app.extensions["pm2_registry"] = ArtefactRegistry(storage)
    app.extensions["pm2_stakeholders"] = StakeholderIdentification(storage)


def json_storage(app: Flask | None = None) -> JsonStorage:
    app = app or current_app
    return app.extensions["pm2_storage"]


def artefact_registry(app: Flask | None = None) -> ArtefactRegistry:
    app = app or current_app
    return app.extensions["pm2_registry"]


def stakeholder_activity(app: Flask | None = None) -> StakeholderIdentification:
    app = app or current_app
    activity = app.extensions["pm2_stakeholders"]
    if not activity.loaded:
        activity.load()
    return activity
