"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints and the wired attribute core.
"""
from __future__ import annotations
import logging
import os
from typing import Optional

from flask import Flask

from idp.config import AppConfig, load_settings
from idp.core.store import Directory
from idp.wiring import build_services


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, directory: Optional[Directory] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings; loaded from the environment when omitted
        directory: Pre-built directory; loaded from DIRECTORY_SEED_FILE when omitted
    """
    if cfg is None:
        cfg = load_settings()

    app = Flask(__name__)

    # Store config for easy access in routes
    app.config["APP_CONFIG"] = cfg
    app.config["SECRET_KEY"] = cfg.secret_key
    app.json.sort_keys = False  # claim order is significant

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

    app.extensions["idp"] = build_services(cfg, directory)

    # Register blueprints
    from idp.api import errors, health, roles, saml, users

    app.register_blueprint(health.bp)
    app.register_blueprint(users.bp, url_prefix="/api/user")
    app.register_blueprint(roles.bp, url_prefix="/api/roles")
    app.register_blueprint(saml.bp, url_prefix="/api/saml")

    # Register error handlers
    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    app.logger.info("Mode=%s; attribute API registered at /api", mode_label)

    if cfg.demo_mode:
        app.logger.warning("Demo mode active - do not deploy with demo credentials")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
