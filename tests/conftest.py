"""
Test Configuration and Fixtures

Every test starts from a cold process: no bootstrap, empty config store,
empty repository cache, no registered timer steps and no settings env vars.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from churchapi.bootstrap import get_bootstrap
from churchapi.config import Settings, get_settings
from churchapi.db.config_store import get_config_store
from churchapi.db.registry import get_registry
from churchapi.jobs.timers import clear_steps
from tests.support.settings import PRODUCTION_VALUES, connection_strings

_SCRUBBED_ENV = [name.upper() for name in Settings.model_fields]


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if not item.get_closest_marker("unit"):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def cold_process(monkeypatch, tmp_path):
    for name in _SCRUBBED_ENV:
        monkeypatch.delenv(name, raising=False)
    # get_settings() reads .env from the working directory
    monkeypatch.chdir(tmp_path)

    def _reset() -> None:
        get_bootstrap().reset()
        get_config_store().reset()
        get_registry().reset()
        get_settings.cache_clear()
        clear_steps()

    _reset()
    yield
    _reset()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings from explicit values only (no .env file)."""

    def _make(*, with_databases: bool = True, **overrides: Any) -> Settings:
        values: dict[str, Any] = {"environment": "test"}
        if with_databases:
            values.update(connection_strings())
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def production_settings(make_settings) -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        return make_settings(**{**PRODUCTION_VALUES, **overrides})

    return _make
