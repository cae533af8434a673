"""
Core heart test configuration and fixtures

Every fixture roots the stores at pytest's tmp_path, so tests never touch
a real core-heart directory and never share state.
"""

import os

import pytest

from core_heart.core.config import TestConfig
from core_heart.core.error_handler import ErrorHandler
from core_heart.core.pipeline import CoreHeart


# =============================================================================
# PYTEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: crosses more than one store")
    config.addinivalue_line("markers", "http: goes through the Flask boundary")


# =============================================================================
# ENVIRONMENT
# =============================================================================

@pytest.fixture(autouse=True)
def clean_core_heart_env(monkeypatch):
    """Env overrides from the developer's shell must not leak into tests."""
    for name in list(os.environ):
        if name.startswith("CORE_HEART_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("PORT", raising=False)


# =============================================================================
# CONFIG / PIPELINE FIXTURES
# =============================================================================

@pytest.fixture
def config(tmp_path):
    """TestConfig rooted at an empty temp directory."""
    return TestConfig(base_dir=tmp_path)


@pytest.fixture
def small_config(tmp_path):
    """Tiny caps so eviction is cheap to exercise."""
    return TestConfig(base_dir=tmp_path, breath_log_cap=5, central_memory_cap=3, ledger_cap=4)


@pytest.fixture
def error_handler():
    return ErrorHandler(debug_mode=False)


@pytest.fixture
def heart(config, error_handler):
    """Fully wired pipeline over empty stores."""
    return CoreHeart(config, error_handler=error_handler)


@pytest.fixture
def small_heart(small_config, error_handler):
    return CoreHeart(small_config, error_handler=error_handler)


# =============================================================================
# HTTP FIXTURES
# =============================================================================

@pytest.fixture
def app(heart):
    from core_heart.service import create_app

    flask_app = create_app(heart=heart)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()

