import json

import httpx
import pytest

from audioscribe.core.errors import UpstreamConfigError, UpstreamFailure
from audioscribe.services.summarization import NO_ANSWER, SummarizationService
from audioscribe.services.transcription import (
    AssemblyAITranscriptionService,
    BaseTranscriptionService,
    WhisperTranscriptionService,
    build_transcription_services,
)


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "clip.mp3"
    path.write_bytes(b"ID3 fake audio bytes")
    return path


def test_base_service_cannot_be_instantiated(http_client):
    with pytest.raises(TypeError):
        BaseTranscriptionService("key", 10.0, http_client)


def test_services_are_keyed_by_name(settings, http_client):
    services = build_transcription_services(settings, http_client)
    assert set(services) == {"whisper", "assemblyai"}
    assert services["assemblyai"].supports_url
    assert not services["whisper"].supports_url


@pytest.mark.asyncio
async def test_whisper_requests_word_timestamps(settings, http_client, fake_api, audio_file):
    service = WhisperTranscriptionService(settings, http_client)

    result = await service.transcribe_file(str(audio_file), "audio/mpeg")

    request = fake_api.requests_to("/audio/transcriptions")[0]
    assert request.headers["Authorization"] == "Bearer test-openai"
    body = request.content
    assert b"whisper-1" in body
    assert b"verbose_json" in body
    assert b'name="timestamp_granularities[]"' in body
    assert b"ID3 fake audio bytes" in body

    assert result.text == "Hello there world"
    assert result.language == "english"
    assert [t.text for t in result.tokens] == ["Hello", "there", "world"]
    assert [t.speaker for t in result.tokens] == ["Speaker 1", "Speaker 2", "Speaker 1"]
    assert result.tokens[2].end == 1.3


def test_whisper_falls_back_to_segments():
    result = WhisperTranscriptionService.parse_response({
        "text": "One. Two.",
        "segments": [{"text": " One.", "start": 0.0, "end": 1.0}, {"text": " Two.", "start": 1.0, "end": 2.0}],
    })
    assert [t.text for t in result.tokens] == ["One.", "Two."]
    assert [t.speaker for t in result.tokens] == ["Speaker 1", "Speaker 2"]


@pytest.mark.asyncio
async def test_assemblyai_uploads_submits_and_polls(settings, http_client, fake_api, audio_file):
    service = AssemblyAITranscriptionService(settings, http_client)

    result = await service.transcribe_file(str(audio_file), "audio/mpeg")

    upload = fake_api.requests_to("/upload")[0]
    assert upload.headers["authorization"] == "test-assembly"
    assert upload.content == b"ID3 fake audio bytes"

    submit = fake_api.requests_to("/transcript")[0]
    payload = json.loads(submit.content)
    assert payload["audio_url"] == "https://cdn.assemblyai.test/upload/abc"
    assert payload["speaker_labels"] is True
    assert len(fake_api.requests_to("/transcript/job-1")) == 3

    assert result.text == "Hi there. Hello!"
    assert [t.speaker for t in result.tokens] == ["Speaker A", "Speaker B"]
    assert result.tokens[1].start == pytest.approx(1.6)
    assert result.tokens[1].end == pytest.approx(2.5)
    assert result.tokens[0].confidence == 0.9


@pytest.mark.asyncio
async def test_assemblyai_url_skips_upload(settings, http_client, fake_api):
    service = AssemblyAITranscriptionService(settings, http_client)

    await service.transcribe_url("https://cdn.example.com/hosted.mp3")

    assert fake_api.requests_to("/upload") == []
    payload = json.loads(fake_api.requests_to("/transcript")[0].content)
    assert payload["audio_url"] == "https://cdn.example.com/hosted.mp3"


def test_assemblyai_missing_confidence_defaults():
    result = AssemblyAITranscriptionService.parse_response({
        "text": "hi",
        "utterances": [{"speaker": "A", "text": "hi", "start": 0, "end": 500}],
    })
    assert result.tokens[0].confidence == 0.95


@pytest.mark.asyncio
async def test_assemblyai_job_error_is_upstream_failure(settings, http_client, fake_api):
    fake_api.assembly_statuses = []
    fake_api.assembly_result = {"id": "job-1", "status": "error", "error": "Audio file is corrupt"}
    service = AssemblyAITranscriptionService(settings, http_client)

    with pytest.raises(UpstreamFailure, match="Audio file is corrupt"):
        await service.transcribe_url("https://cdn.example.com/hosted.mp3")


@pytest.mark.asyncio
async def test_assemblyai_gives_up_after_max_polls(settings, http_client, fake_api):
    fake_api.assembly_statuses = ["processing"] * 10
    service = AssemblyAITranscriptionService(settings, http_client)

    with pytest.raises(UpstreamFailure, match="timed out"):
        await service.transcribe_url("https://cdn.example.com/hosted.mp3")
    assert len(fake_api.requests_to("/transcript/job-1")) == settings.ASSEMBLYAI_MAX_POLLS


@pytest.mark.asyncio
async def test_rejected_key_is_reported_as_auth_failure(settings, http_client, fake_api, audio_file):
    fake_api.fail("/audio/transcriptions", status_code=401)
    service = WhisperTranscriptionService(settings, http_client)

    with pytest.raises(UpstreamFailure) as exc_info:
        await service.transcribe_file(str(audio_file), "audio/mpeg")
    assert exc_info.value.message == "Authentication failed with OpenAI API. Check API key."
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_server_error_includes_provider_message(settings, http_client, fake_api, audio_file):
    fake_api.fail("/upload", status_code=502)
    service = AssemblyAITranscriptionService(settings, http_client)

    with pytest.raises(UpstreamFailure, match="HTTP 502 - upstream exploded"):
        await service.transcribe_file(str(audio_file), "audio/mpeg")


@pytest.mark.asyncio
async def test_timeout_is_upstream_failure(settings, audio_file):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = WhisperTranscriptionService(settings, client)

    with pytest.raises(UpstreamFailure, match="Request timeout - please try again"):
        await service.transcribe_file(str(audio_file), "audio/mpeg")


@pytest.mark.asyncio
async def test_network_error_is_upstream_failure(settings, audio_file):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = AssemblyAITranscriptionService(settings, client)

    with pytest.raises(UpstreamFailure, match="Network connection failed"):
        await service.transcribe_file(str(audio_file), "audio/mpeg")


@pytest.mark.asyncio
async def test_missing_key_fails_before_any_request(settings, http_client, fake_api, audio_file):
    unconfigured = settings.model_copy(update={"openai_api_key": None, "assembly_api_key": None})
    services = build_transcription_services(unconfigured, http_client)

    for service in services.values():
        with pytest.raises(UpstreamConfigError, match="API key not configured"):
            await service.transcribe_file(str(audio_file), "audio/mpeg")
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_summary_uses_prompt_and_token_budget(summarizer, fake_api):
    summary = await summarizer.summarize("We talked about the budget.", user_prompt="What was decided?")

    assert summary == "- Greetings were exchanged"
    payload = json.loads(fake_api.requests_to("/chat/completions")[0].content)
    assert payload["model"] == "gpt-4o-mini"
    assert payload["max_tokens"] == 300
    assert 'answer this question: "What was decided?"' in payload["messages"][1]["content"]


@pytest.mark.asyncio
async def test_summary_failure_returns_none(summarizer, fake_api):
    fake_api.fail("/chat/completions", status_code=500)
    assert await summarizer.summarize("Some transcript") is None


@pytest.mark.asyncio
async def test_summary_skipped_without_key_or_text(settings, http_client, fake_api):
    unconfigured = SummarizationService(settings.model_copy(update={"openai_api_key": None}), http_client)

    assert await unconfigured.summarize("Some transcript") is None
    assert await SummarizationService(settings, http_client).summarize("   ") is None
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_long_transcript_is_truncated(settings, http_client, fake_api):
    service = SummarizationService(settings.model_copy(update={"SUMMARY_MAX_INPUT_CHARS": 20}), http_client)

    await service.summarize("x" * 500)

    content = json.loads(fake_api.requests[0].content)["messages"][1]["content"]
    assert "x" * 20 + "..." in content
    assert "x" * 21 not in content


@pytest.mark.asyncio
async def test_answer_question(summarizer, fake_api):
    answer = await summarizer.answer_question("Hello there world", "What did they say?")

    assert answer == "They said hello."
    payload = json.loads(fake_api.requests[0].content)
    assert payload["max_tokens"] == 400
    assert "Question: What did they say?" in payload["messages"][1]["content"]


@pytest.mark.asyncio
async def test_empty_answer_falls_back(summarizer, fake_api):
    fake_api.answer_text = ""
    assert await summarizer.answer_question("text", "question") == NO_ANSWER


@pytest.mark.asyncio
async def test_answer_failure_propagates(summarizer, fake_api):
    fake_api.fail("/chat/completions", status_code=429)
    with pytest.raises(UpstreamFailure, match="HTTP 429"):
        await summarizer.answer_question("text", "question")


@pytest.mark.asyncio
async def test_answer_with_malformed_response_is_upstream_failure(summarizer, fake_api):
    fake_api.respond("/chat/completions", 200, [{"unexpected": "shape"}])
    with pytest.raises(UpstreamFailure, match="unexpected response"):
        await summarizer.answer_question("text", "question")


@pytest.mark.asyncio
async def test_answer_without_key_is_config_error(settings, http_client):
    service = SummarizationService(settings.model_copy(update={"openai_api_key": None}), http_client)
    with pytest.raises(UpstreamConfigError):
        await service.answer_question("text", "question")
