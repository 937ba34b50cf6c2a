"""
Pytest configuration and shared fixtures.

1. Adds project root and tests root to sys.path for imports
2. Provides the fakes for the external collaborators as fixtures
"""

import sys
from pathlib import Path

import pytest

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

from fixtures.fakes import FakeHistory, FakeTree, TEST_SEED  # noqa: E402
from services.crypto_core.nullifiers import SeedWrapper  # noqa: E402


@pytest.fixture
def seed():
    """SeedWrapper over a fixed 32-byte test seed."""
    return SeedWrapper(TEST_SEED)


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def tree():
    return FakeTree()
