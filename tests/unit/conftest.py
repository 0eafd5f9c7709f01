from pathlib import Path
from typing import Generator

import dotenv
import pytest

from filevault.adapters import InMemoryObjectStore
from filevault.services.lifecycle import LifecycleManager
from filevault.storage.retention import MILLIS_PER_DAY
from filevault.storage.retention import RetentionPolicy


T0 = 1_700_000_000_000


@pytest.fixture(scope="session", autouse=True)
def _load_test_env() -> Generator[None, None, None]:
    """Load test environment variables from base + local env files."""
    project_root = Path(__file__).parents[2]
    dotenv.load_dotenv(project_root / ".env.defaults", override=True)
    dotenv.load_dotenv(project_root / ".env.test-local", override=True)
    yield


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, *, days: float = 0, millis: int = 0) -> None:
        self.now += int(days * MILLIS_PER_DAY) + millis


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def manager(store: InMemoryObjectStore, clock: FakeClock) -> LifecycleManager:
    return LifecycleManager(store, RetentionPolicy.from_days(30), clock=clock)
