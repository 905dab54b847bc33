import json

import httpx
import pytest
from fastapi.testclient import TestClient

from audioscribe.core.config import Settings
from audioscribe.db.connection import create_db_engine, create_session_factory, init_db
from audioscribe.main import create_app
from audioscribe.services.pipeline import TranscriptionPipeline
from audioscribe.services.summarization import SummarizationService
from audioscribe.services.transcription import build_transcription_services


WHISPER_RESPONSE = {
    "text": "Hello there world",
    "language": "english",
    "words": [
        {"word": "Hello", "start": 0.0, "end": 0.4},
        {"word": "there", "start": 0.5, "end": 0.8},
        {"word": "world", "start": 0.9, "end": 1.3},
    ],
}

ASSEMBLY_RESULT = {
    "id": "job-1",
    "status": "completed",
    "text": "Hi there. Hello!",
    "language_code": "en",
    "utterances": [
        {"speaker": "A", "text": "Hi there.", "start": 0, "end": 1500, "confidence": 0.9},
        {"speaker": "B", "text": "Hello!", "start": 1600, "end": 2500, "confidence": 0.8},
    ],
}


class FakeProviderAPI:
    """Stands in for the OpenAI and AssemblyAI HTTP APIs behind an httpx.MockTransport."""

    def __init__(self):
        self.whisper_response = dict(WHISPER_RESPONSE)
        self.assembly_result = dict(ASSEMBLY_RESULT)
        self.assembly_statuses = ["queued", "processing"]
        self.summary_text = "- Greetings were exchanged"
        self.answer_text = "They said hello."
        self.overrides = {}
        self.requests = []

    def respond(self, path_suffix, status_code, body):
        self.overrides[path_suffix] = (status_code, body)

    def fail(self, path_suffix, status_code=500, body=None):
        self.respond(path_suffix, status_code, body or {"error": {"message": "upstream exploded"}})

    def requests_to(self, path_suffix):
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for suffix, (status_code, body) in self.overrides.items():
            if path.endswith(suffix):
                return httpx.Response(status_code, json=body)

        if path.endswith("/audio/transcriptions"):
            return httpx.Response(200, json=self.whisper_response)
        if path.endswith("/chat/completions"):
            payload = json.loads(request.content)
            system = payload["messages"][0]["content"]
            text = self.answer_text if "answers questions" in system else self.summary_text
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": text}}]})
        if path.endswith("/upload"):
            return httpx.Response(200, json={"upload_url": "https://cdn.assemblyai.test/upload/abc"})
        if path.endswith("/transcript") and request.method == "POST":
            return httpx.Response(200, json={"id": "job-1", "status": "queued"})
        if "/transcript/" in path:
            if self.assembly_statuses:
                return httpx.Response(200, json={"id": "job-1", "status": self.assembly_statuses.pop(0)})
            return httpx.Response(200, json=self.assembly_result)
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def fake_api():
    return FakeProviderAPI()


@pytest.fixture
def http_client(fake_api):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))


@pytest.fixture
def uploads_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def settings(uploads_dir):
    return Settings(
        DATABASE_URL="sqlite://",
        UPLOADS_DIR=str(uploads_dir),
        BACKEND_CORS_ORIGINS=None,
        openai_api_key="test-openai",
        assembly_api_key="test-assembly",
        DEFAULT_PROVIDER="whisper",
        ASSEMBLYAI_POLL_INTERVAL=0,
        ASSEMBLYAI_MAX_POLLS=5,
    )


@pytest.fixture
def db_session():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def summarizer(settings, http_client):
    return SummarizationService(settings, http_client)


@pytest.fixture
def pipeline(settings, http_client, summarizer):
    providers = build_transcription_services(settings, http_client)
    return TranscriptionPipeline(providers, summarizer, uploads_dir=settings.UPLOADS_DIR)


@pytest.fixture
def app(settings, http_client):
    return create_app(settings, http_client=http_client)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
