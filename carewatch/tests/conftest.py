# carewatch/tests/conftest.py
import sys
from datetime import datetime
from pathlib import Path

import pytest

# This file is at <project_root>/carewatch/tests/conftest.py
# Project root is two levels up from here.
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from carewatch.core.store import MemoryStore, StoreWriter  # noqa: E402
from carewatch.tests.fakes import TZ, FakeClock, RecordingSink  # noqa: E402


@pytest.fixture
def clock():
    # Tuesday morning, before the default 09:00 check-in time
    return FakeClock(datetime(2026, 3, 10, 8, 0, tzinfo=TZ))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def writer(store):
    return StoreWriter(store)


@pytest.fixture
def sink():
    return RecordingSink()
