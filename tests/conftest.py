from __future__ import annotations

from pathlib import Path

import pytest

from shiftmetrics.store.base import InMemoryShiftStore
from tests.helpers import FIXTURES, MINESITE


@pytest.fixture
def minesite_path() -> Path:
    return MINESITE


@pytest.fixture
def minesite_store() -> InMemoryShiftStore:
    return InMemoryShiftStore.from_dataset(MINESITE)


@pytest.fixture
def engine_yaml() -> Path:
    return FIXTURES / "engine.yaml"
