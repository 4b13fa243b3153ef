import logging

from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.pm2.config import load_config
from app.pm2.datastore import init_datastore
from app.pm2.routes import bp as routes_bp
from app.pm2.modules.artefacts.admin import bp as artefacts_bp
from app.pm2.modules.artefacts.export import ExportError
from app.pm2.modules.artefacts.models import InvalidTransitionError, UnknownArtefactError, UnknownFieldError
from app.pm2.modules.lifecycle.admin import bp as lifecycle_bp
from app.pm2.modules.logs.admin import bp as logs_bp
from app.pm2.modules.logs.models import LogEntryNotFoundError, LogValidationError, UnknownLogTypeError
from app.pm2.modules.stakeholders.admin import bp as stakeholders_bp
from app.pm2.modules.stakeholders.models import StakeholderError, UnknownStakeholderError
from app.pm2.storage import JsonStorage


def create_app(storage: JsonStorage | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False

    logging.basicConfig(level=app.config.get("LOG_LEVEL") or "INFO")
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    # Storage health check (fail loudly on misconfiguration)
    if storage is None and app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = []
        for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
            if not app.config.get(key):
                missing_s3.append(key)
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            try:
                from app.pm2.storage import S3JsonStorage, storage_from_config

                s3 = storage_from_config(app.config)
                if isinstance(s3, S3JsonStorage):
                    s3._client().head_bucket(Bucket=s3.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", s3.bucket)
            except Exception as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    init_datastore(app, storage)

    app.register_blueprint(routes_bp)
    app.register_blueprint(artefacts_bp, url_prefix="/artefacts")
    app.register_blueprint(logs_bp, url_prefix="/logs")
    app.register_blueprint(stakeholders_bp, url_prefix="/activities")
    app.register_blueprint(lifecycle_bp, url_prefix="/lifecycle")

    def _error(message: str, status: int, **extra):
        return jsonify({"error": message, **extra}), status

    @app.errorhandler(UnknownArtefactError)
    @app.errorhandler(UnknownLogTypeError)
    @app.errorhandler(LogEntryNotFoundError)
    @app.errorhandler(UnknownStakeholderError)
    def _err_not_found(e):  # type: ignore[no-redef]
        return _error(str(e), 404)

    @app.errorhandler(LogValidationError)
    def _err_log_validation(e):  # type: ignore[no-redef]
        return _error(str(e), 400, errors=e.errors)

    @app.errorhandler(UnknownFieldError)
    @app.errorhandler(StakeholderError)
    @app.errorhandler(ExportError)
    def _err_bad_request(e):  # type: ignore[no-redef]
        return _error(str(e), 400)

    @app.errorhandler(InvalidTransitionError)
    def _err_conflict(e):  # type: ignore[no-redef]
        return _error(str(e), 409)

    @app.errorhandler(HTTPException)
    def _err_http(e):  # type: ignore[no-redef]
        return _error(e.description or e.name, e.code or 500)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500")
        return _error("Internal server error", 500)

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
