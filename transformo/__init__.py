"""
Transformo billing core: subscription access, Stripe webhook reconciliation
and content visibility, served as a Flask application.
"""

import logging

import sentry_sdk
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration

from transformo.cli import register_commands
from transformo.config import get_config
from transformo.error_handlers import register_error_handlers
from transformo.extensions import init_extensions
from transformo.logging_config import setup_logging
from transformo.middleware.request_id import init_request_id_middleware
from transformo.routes import register_blueprints

logger = logging.getLogger(__name__)


def setup_sentry(app: Flask) -> None:
    """Initialize Sentry error tracking"""
    sentry_dsn = app.config.get("SENTRY_DSN")

    if sentry_dsn and app.config.get("ENVIRONMENT") == "production":
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment="production",
            release=app.config.get("APP_VERSION", "1.0.0"),
            send_default_pii=False,
        )
        logger.info("Sentry error tracking initialized")


def create_app(config_name: str | None = None) -> Flask:
    """
    Application factory.

    Raises:
        ConfigurationError: If the selected configuration is invalid
    """
    app = Flask(__name__)

    # ============================================
    # CONFIGURATION (FAIL FAST)
    # ============================================
    app.config.from_object(get_config(config_name))

    # ============================================
    # LOGGING & MONITORING
    # ============================================
    init_request_id_middleware(app)
    setup_logging(app)
    setup_sentry(app)
    logger.info(f"Starting application in {app.config['ENVIRONMENT']} mode")

    # ============================================
    # EXTENSIONS, ROUTES, ERRORS, CLI
    # ============================================
    init_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    logger.info("✅ Application initialization completed")
    return app
