from __future__ import annotations

import os

import pytest

from seogen.config import Settings


def make_settings(**overrides) -> Settings:
    values = dict(openai_api_key=None, anthropic_api_key=None, rate_limit_delay=0.5)
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith("SEOGEN_") or name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory():
    return make_settings
