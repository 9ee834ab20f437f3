# zera_oracle/routes/__init__.py
"""
This module imports all blueprint instances from the route modules
and provides a function to register them on the Flask app.
"""
import logging
from flask import Flask

from .auth_routes import auth_bp
from .price_routes import price_bp
from .symbol_routes import symbol_bp
from .config_routes import config_bp
from .audit_routes import audit_bp
from .realtime_routes import realtime_bp

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def register_routes(app: Flask):
    """Register all blueprints with the Flask app under the API prefix."""
    app.register_blueprint(auth_bp, url_prefix=API_PREFIX)
    app.register_blueprint(price_bp, url_prefix=API_PREFIX)
    app.register_blueprint(symbol_bp, url_prefix=API_PREFIX)
    app.register_blueprint(config_bp, url_prefix=API_PREFIX)
    app.register_blueprint(audit_bp, url_prefix=API_PREFIX)
    app.register_blueprint(realtime_bp, url_prefix=API_PREFIX)

    logger.info("✅ All application blueprints registered.")
