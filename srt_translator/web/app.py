"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from flask import Flask, jsonify

from srt_translator.core.credentials import CredentialStore
from srt_translator.logger import get_logger
from srt_translator.web.runtime import QueueRuntime

from .routes.jobs import jobs_bp
from .routes.settings import settings_bp

logger = get_logger(__name__)

MAX_UPLOAD_BYTES = 64 * 1024 * 1024


def build_app(runtime: QueueRuntime, credentials: CredentialStore) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES

    app.extensions["queue_runtime"] = runtime
    app.extensions["credential_store"] = credentials

    register_blueprints(app)
    register_default_routes(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(jobs_bp, url_prefix="/api/jobs")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")


def register_default_routes(app: Flask) -> None:
    """Register health route and JSON error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        runtime = app.extensions["queue_runtime"]
        return jsonify({"status": "ok", "queue_running": runtime.running})

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def payload_too_large(e):
        return jsonify({"error": "Upload too large", "code": "payload_too_large"}), 413

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500
