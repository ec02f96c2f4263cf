import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shauri.db import Base, get_db
from shauri.main import app
from shauri.routers import chat as chat_router
from shauri.schemas import StudentContext


class FakeTransport:
    """Stands in for ChatTransport; replies are queued, requests recorded."""

    def __init__(self, replies=None):
        self.replies: List[Any] = list(replies or [])
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None
        self.papers: List[str] = []

    async def exchange(self, mode, message, history=(), student=None, *, uploaded_text=None, upload_type=None):
        self.calls.append({
            "mode": mode,
            "message": message,
            "history": list(history),
            "student": student,
            "uploaded_text": uploaded_text,
            "upload_type": upload_type,
        })
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def download_paper(self, paper_text):
        self.papers.append(paper_text)
        return b"%PDF-fake"


class FakeGemini:
    """Replaces GeminiClient inside the chat router."""

    replies: List[str] = []
    calls: List[Dict[str, Any]] = []
    fail = False

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def chat(self, messages, *, temperature=None):
        FakeGemini.calls.append({"messages": messages, "temperature": temperature})
        if FakeGemini.fail:
            raise RuntimeError("model down")
        return FakeGemini.replies.pop(0) if FakeGemini.replies else "ok"


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def student():
    return StudentContext(name="Asha", class_level="9")


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_gemini(monkeypatch):
    FakeGemini.replies = []
    FakeGemini.calls = []
    FakeGemini.fail = False
    monkeypatch.setattr(chat_router, "GeminiClient", FakeGemini)
    chat_router._exams.clear()
    yield FakeGemini
    chat_router._exams.clear()


@pytest.fixture
def db_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def client(db_session_factory, fake_gemini):
    def _get_db():
        db = db_session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    # Not used as a context manager: startup would create tables in the real database
    yield TestClient(app)
    app.dependency_overrides.clear()
