"""
Pitchboard configuration, one class per environment.

    app.config.from_object(config[os.getenv("APP_ENV", "development")]())

Primary store:  PRIMARY_STORE=sql  → DATABASE_URL (SQLite file when unset)
                PRIMARY_STORE=rest → SUPABASE_URL + SUPABASE_KEY
Cache mirror:   CACHE_URL = redis://… | file:///dir | memory://
"""

import os

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
instance_dir = os.path.join(basedir, "instance")


def _database_url(default):
    # Heroku-style postgres:// URLs are rejected by SQLAlchemy 2.x
    raw = os.getenv("DATABASE_URL", "")
    if not raw:
        return default
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    """Settings shared by every environment."""

    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(instance_dir, 'pitchboard_dev.db')}"
    )

    PRIMARY_STORE = os.getenv("PRIMARY_STORE", "sql")
    SUPABASE_URL = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
    STORE_TIMEOUT = int(os.getenv("STORE_TIMEOUT", "30"))

    CACHE_URL = os.getenv("CACHE_URL", f"file://{os.path.join(instance_dir, 'cache')}")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    """In-memory SQLite primary store and an in-memory cache mirror."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    PRIMARY_STORE = "sql"
    CACHE_URL = "memory://"


class ProductionConfig(Config):
    """Refuses to start without a reachable primary store configured."""

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    def __init__(self):
        if self.PRIMARY_STORE == "rest":
            if not (self.SUPABASE_URL and self.SUPABASE_KEY):
                raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set when PRIMARY_STORE=rest")
        elif not os.getenv("DATABASE_URL"):
            raise RuntimeError("DATABASE_URL is required in production when PRIMARY_STORE=sql")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
