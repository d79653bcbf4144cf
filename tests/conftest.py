from __future__ import annotations

import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for p in (str(ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from fakes import FakeEvents, FakeHost, FakeLauncher, FakeScheduler, FakeWatchSource, MemoryStore  # noqa: E402


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def source():
    return FakeWatchSource()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def events():
    return FakeEvents()
