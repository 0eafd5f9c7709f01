from typing import Any
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport
from httpx import AsyncClient

from filevault.adapters import InMemoryObjectStore
from filevault.config import get_config
from filevault.main import factory


@pytest.fixture
def api_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def api_config() -> Any:
    return get_config()


@pytest.fixture
def api_app(api_config: Any, api_store: InMemoryObjectStore) -> Any:
    return factory(config=api_config, store=api_store)


@pytest_asyncio.fixture
async def client(api_app: Any) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as client:
        yield client
