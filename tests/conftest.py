from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.database import Database, get_database
from app.main import app
from app.models import Conversation, Message
from app.services.llm import LLMProvider, LLMResponse


class FakeLLM(LLMProvider):
    """Returns scripted replies and records every request."""

    def __init__(self, *replies: str, error: Exception = None):
        self.replies = list(replies)
        self.error = error
        self.calls = []

    def generate(self, messages, model=None, temperature=0.7, max_tokens=300):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        content = self.replies.pop(0) if self.replies else "好的"
        return LLMResponse(content=content, model="fake-model")

    def system_prompts(self):
        return [call["messages"][0]["content"] for call in self.calls]


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("LINE_CHANNEL_ACCESS_TOKEN", "test-token")
    monkeypatch.setenv("LINE_CHANNEL_SECRET", "test-secret")


@pytest.fixture
def database():
    """In-memory SQLite database with all tables."""
    database = Database("sqlite:///:memory:")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def client(database):
    app.dependency_overrides[get_database] = lambda: database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def make_conversation(db):
    def _make(user_id="U-test", title="", mode=None, updated_at=None):
        now = updated_at or datetime.now(timezone.utc)
        conversation = Conversation(
            user_id=user_id,
            title=title,
            message_count=0,
            current_mode=mode,
            created_at=now,
            updated_at=now,
        )
        db.add(conversation)
        db.commit()
        return conversation

    return _make


@pytest.fixture
def add_messages(db):
    """Insert turns with strictly increasing timestamps."""

    def _add(conversation, contents, start=None, role=None):
        start = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
        messages = []
        for i, content in enumerate(contents):
            ts = start + timedelta(minutes=i)
            message = Message(
                conversation_id=conversation.id,
                user_id=conversation.user_id,
                role=role or ("user" if i % 2 == 0 else "assistant"),
                content=content,
                timestamp=ts,
                created_at=ts,
                updated_at=ts,
            )
            db.add(message)
            messages.append(message)
        conversation.message_count = (conversation.message_count or 0) + len(contents)
        db.commit()
        return messages

    return _add


@pytest.fixture
def make_llm():
    return FakeLLM
