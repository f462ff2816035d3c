"""Shared test fixtures."""

from datetime import date
from pathlib import Path

import pytest

from debtledger.config import Config
from debtledger.database.repository import MIGRATIONS_DIR, Repository

# Test fixture config directory with synthetic data
FIXTURE_CONFIG_DIR = Path(__file__).parent / "fixtures" / "config"

# Fixed "today" for date-relative tests
TODAY = date(2026, 3, 15)


@pytest.fixture
def config():
    return Config(FIXTURE_CONFIG_DIR)


@pytest.fixture
def repo():
    r = Repository(":memory:")
    r.apply_migrations(MIGRATIONS_DIR)
    yield r
    r.close()


@pytest.fixture
def today():
    return TODAY
