"""
Configuration management for the Transformo billing service.
Values come from the environment; production fails fast on missing secrets.
"""

import os
import logging
from datetime import timedelta
from enum import Enum
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class ConfigurationError(Exception):
    """Raised when configuration validation fails"""
    pass


class BaseConfig:
    """
    Base configuration shared by all environments.
    """

    # ============================================
    # APPLICATION META
    # ============================================
    APP_NAME = os.getenv("APP_NAME", "Transformo")
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
    ENVIRONMENT = Environment.DEVELOPMENT.value
    DEBUG = False
    TESTING = False
    PROPAGATE_EXCEPTIONS = False

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-immediately-in-production")
    BASE_URL = os.getenv("BASE_URL", "http://localhost:3000").rstrip("/")

    # ============================================
    # DATABASE
    # ============================================
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///transformo.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ============================================
    # JWT
    # ============================================
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=15)
    JWT_ERROR_MESSAGE_KEY = "error"

    # ============================================
    # STRIPE
    # ============================================
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))
    STRIPE_TIMEOUT_SECONDS = float(os.getenv("STRIPE_TIMEOUT_SECONDS", "10"))
    STRIPE_MAX_RETRIES = int(os.getenv("STRIPE_MAX_RETRIES", "2"))
    STRIPE_MONTHLY_PRICE_ID = os.getenv("STRIPE_MONTHLY_PRICE_ID", "")
    STRIPE_YEARLY_PRICE_ID = os.getenv("STRIPE_YEARLY_PRICE_ID", "")
    TRIAL_PERIOD_DAYS = int(os.getenv("TRIAL_PERIOD_DAYS", "7"))

    # ============================================
    # REQUEST GATING
    # ============================================
    TRIAL_START_PATH = os.getenv("TRIAL_START_PATH", "/trial-setup")
    BILLING_PATH = os.getenv("BILLING_PATH", "/billing")

    # ============================================
    # LOGGING & MONITORING
    # ============================================
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_REQUESTS = os.getenv("LOG_REQUESTS", "False").lower() == "true"
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    @classmethod
    def validate(cls):
        """Hook for environment specific validation."""
        return cls


class DevelopmentConfig(BaseConfig):
    ENVIRONMENT = Environment.DEVELOPMENT.value
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    ENVIRONMENT = Environment.TESTING.value
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URI", "sqlite:///:memory:")
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "super-secret-test-key-for-transformo-2024"
    STRIPE_SECRET_KEY = "sk_test_mock"
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    STRIPE_MONTHLY_PRICE_ID = "price_monthly"
    STRIPE_YEARLY_PRICE_ID = "price_yearly"
    BASE_URL = "http://localhost:3000"
    SENTRY_DSN = None


class ProductionConfig(BaseConfig):
    ENVIRONMENT = Environment.PRODUCTION.value

    @classmethod
    def validate(cls):
        required = {
            "SECRET_KEY": os.getenv("SECRET_KEY"),
            "DATABASE_URL": os.getenv("DATABASE_URL"),
            "STRIPE_SECRET_KEY": cls.STRIPE_SECRET_KEY,
            "STRIPE_WEBHOOK_SECRET": cls.STRIPE_WEBHOOK_SECRET,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required production settings: {', '.join(missing)}"
            )

        if urlparse(cls.SQLALCHEMY_DATABASE_URI).scheme == "sqlite":
            raise ConfigurationError("SQLite is not allowed in production. Use PostgreSQL.")

        if cls.STRIPE_SECRET_KEY.startswith("sk_test"):
            raise ConfigurationError("Stripe test key detected in production!")

        return cls


CONFIGS = {
    Environment.DEVELOPMENT.value: DevelopmentConfig,
    Environment.TESTING.value: TestingConfig,
    Environment.PRODUCTION.value: ProductionConfig,
}


def get_config(name=None):
    """Resolve and validate a config class by environment name."""
    name = (name or os.getenv("FLASK_CONFIG", "development")).lower()
    try:
        config_class = CONFIGS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown configuration: {name}")

    logger.debug("Loading configuration", extra={"config": name})
    return config_class.validate()
