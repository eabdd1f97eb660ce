"""
crewplan Web Application Factory

Centralized Flask app that registers module blueprints.
Mirrors how cli/main.py assembles module CLIs.
"""

import os

from flask import Flask, jsonify


def _get_secret() -> str:
    """Resolve SECRET_KEY with priority: env var > config > generate."""
    from crewplan.core.config import get_config

    env_key = os.environ.get("CREWPLAN_SECRET_KEY")
    if env_key:
        return env_key

    cfg_key = (get_config().get("web") or {}).get("secret_key")
    if cfg_key:
        return cfg_key

    return os.urandom(32).hex()


def create_app() -> Flask:
    """Create and configure the crewplan Flask application."""
    app = Flask(__name__)
    app.config["SECRET_KEY"] = _get_secret()

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Register blueprints ──────────────────────────────────────────────
    from crewplan.api.schedule import bp as schedule_bp
    app.register_blueprint(schedule_bp)

    from crewplan.api.dispatch import bp as dispatch_bp
    app.register_blueprint(dispatch_bp)

    @app.route("/health")
    def health():
        import crewplan

        return jsonify({"status": "ok", "version": crewplan.__version__})

    return app
