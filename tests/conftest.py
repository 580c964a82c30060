"""Shared test fixtures and configuration."""

from __future__ import annotations

import pytest

from tests.helpers import make_settings
from weather_chat.config import Config


@pytest.fixture
def settings() -> Config:
    """Config with no narration pause and a fake upstream."""
    return make_settings()
