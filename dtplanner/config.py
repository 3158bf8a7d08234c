"""
SOW approval engine — settings per environment.

``create_app`` picks a class from ``config`` by the APP_ENV name and
instantiates it, so a class may refuse to start when its environment is
incomplete.

Environment variables:
    DATABASE_URL       primary database (required in production)
    TEST_DATABASE_URL  overrides the in-memory SQLite used by the test suite
    SECRET_KEY         required in production
    CORS_ORIGINS       comma-separated origins allowed to call the API
    SLOW_REQUEST_MS    request duration logged at WARNING by the timing middleware
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'dtplanner_dev.db')}"


def _database_url(default: str | None = None) -> str | None:
    """DATABASE_URL with the legacy ``postgres://`` scheme rewritten for SQLAlchemy 2."""
    raw = os.getenv("DATABASE_URL", "")
    if not raw:
        return default
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    # Origin of the planner UI that renders the sign-off screens
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "1000"))


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    # StaticPool (in-memory SQLite) rejects pool sizing options
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}
    # Keeps slow-request warnings out of test output
    SLOW_REQUEST_MS = 60_000


class ProductionConfig(Config):
    """Postgres-backed deployment. Statements are cut off after 30s."""

    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            ) if not value
        ]
        if missing:
            raise RuntimeError(f"Production requires environment variables: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
