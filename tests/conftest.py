"""Pytest fixtures for the RuleBot API

Provides:
- settings: configuration pointing at a throwaway SQLite file
- generator: in-memory stand-in for the external generation service
- client: FastAPI TestClient with the app lifespan running
- database: initialized async store for direct session_manager tests
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from db.database import Database


class FakeGenerator:
    """Records every call and answers with a numbered reply."""

    def __init__(self, reply: str = "Bot reply", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate(self, history, new_message):
        self.calls.append(([(m.role, m.content) for m in history], new_message))
        if self.error is not None:
            raise self.error
        return f"{self.reply} #{len(self.calls)}"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        generation_api_key="test-key",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'rulebot.db'}",
    )


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(settings, generator):
    with TestClient(create_app(settings, generator=generator)) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.close()
