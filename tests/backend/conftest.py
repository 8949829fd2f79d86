import pytest
from httpx import ASGITransport, AsyncClient

from src.notes_backend.main import create_app
from src.notes_backend.services.transcription.backends import DemoSpeechRecognizer
from src.notes_backend.services.transcription.service import MeetingTranscriptionService
from src.notes_backend.services.transcription.session_store import SessionStore


@pytest.fixture
async def store():
    session_store = SessionStore()
    yield session_store
    await session_store.close()


@pytest.fixture
def service(store):
    return MeetingTranscriptionService(
        store=store,
        recognizer=DemoSpeechRecognizer(latency_ms=0),
        eviction_delay_seconds=5,
    )


@pytest.fixture
async def app():
    application = create_app()
    yield application
    await application.state.session_store.close()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
