"""
Application factory and configuration tests.

Tests cover:
  - Rate-limit storage is taken from RATELIMIT_STORAGE_URI
  - Production refuses to start without DATABASE_URL / SECRET_KEY
"""
import pytest
from flask import Flask

from app import limiter
from app.config import ProductionConfig


class TestRateLimiter:
    def test_storage_uri_comes_from_config(self, monkeypatch):
        monkeypatch.setattr(limiter, "enabled", limiter.enabled)
        monkeypatch.setattr(limiter, "_storage_uri", None, raising=False)
        scratch = Flask("scratch")
        scratch.config.update(RATELIMIT_ENABLED=True, RATELIMIT_STORAGE_URI="nosuchscheme://")

        with pytest.raises(Exception):
            limiter.init_app(scratch)


class TestProductionConfig:
    def test_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        monkeypatch.setenv("SECRET_KEY", "s")
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            ProductionConfig()

    def test_requires_secret_key(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/forms")
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError, match="SECRET_KEY"):
            ProductionConfig()
