# transformo/extensions.py
"""
Flask extensions initialization module.
"""

import logging

from flask import current_app
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from transformo.billing.provider import StripeConfig, StripeGateway

db = SQLAlchemy()
jwt = JWTManager()
migrate = Migrate()

logger = logging.getLogger(__name__)

STRIPE_GATEWAY_KEY = "stripe_gateway"


def init_extensions(app):
    """Initialize all Flask extensions against the app."""
    db.init_app(app)
    logger.info("SQLAlchemy initialized")

    migrate.init_app(app, db)
    logger.info("Flask-Migrate initialized")

    jwt.init_app(app)
    logger.info("JWT Manager initialized")

    init_stripe(app)

    return app


def init_stripe(app):
    app.extensions[STRIPE_GATEWAY_KEY] = StripeGateway(StripeConfig.from_app_config(app.config))
    logger.info("Stripe gateway initialized")


def get_stripe_gateway():
    return current_app.extensions[STRIPE_GATEWAY_KEY]
