# audioscribe/services/transcription.py
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import httpx

from audioscribe.core.config import Settings
from audioscribe.core.errors import UpstreamConfigError, UpstreamFailure
from audioscribe.services.normalizer import (
    Token,
    UtteranceToken,
    WordToken,
    tokens_from_utterances,
    tokens_from_words,
)

logger = logging.getLogger(__name__)

# Confidence used when the provider gives none for an utterance
DEFAULT_UTTERANCE_CONFIDENCE = 0.95


@dataclass
class ProviderTranscript:
    """What every provider hands back: full text plus canonical tokens."""
    text: str
    tokens: List[Token] = field(default_factory=list)
    language: Optional[str] = None


def describe_http_error(provider: str, http_err: httpx.HTTPStatusError) -> str:
    """Readable message for a rejected provider request."""
    status = http_err.response.status_code
    detail = ""
    try:
        err_data = http_err.response.json()
        if isinstance(err_data, dict):
            error = err_data.get("error") or err_data.get("detail")
            if isinstance(error, dict):
                error = error.get("message")
            if error:
                detail = f" - {error}"
    except ValueError:
        body = http_err.response.text[:200]
        if body:
            detail = f" - {body}"

    if status in (401, 403):
        return f"Authentication failed with {provider} API. Check API key."
    return f"{provider} API returned HTTP {status}{detail}"


class BaseTranscriptionService(ABC):
    """Shared plumbing for provider adapters: credentials, client, error mapping."""

    name = "base"
    display_name = "Transcription"
    supports_url = False

    def __init__(self, api_key: Optional[str], timeout: float, http_client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key or None
        # Use an AsyncClient instance for connection pooling; every call is bounded by the timeout
        self.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        if not self.api_key:
            logger.warning(f"{self.display_name} API key not configured. Requests to this provider will be rejected.")

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise UpstreamConfigError(f"{self.display_name} API key not configured")

    async def _send(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send one request and return the decoded JSON body, mapping failures to UpstreamFailure."""
        try:
            response = await self.http_client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as http_err:
            message = describe_http_error(self.display_name, http_err)
            logger.error(message)
            raise UpstreamFailure(message) from http_err
        except httpx.TimeoutException as timeout_err:
            logger.error(f"Timeout calling {self.display_name} API: {timeout_err}")
            raise UpstreamFailure("Request timeout - please try again") from timeout_err
        except httpx.RequestError as req_err:
            logger.error(f"Network error calling {self.display_name} API: {req_err}")
            raise UpstreamFailure(
                "Network connection failed - please check your internet connection and try again"
            ) from req_err
        except ValueError as decode_err:
            logger.error(f"{self.display_name} API returned a non-JSON body: {decode_err}")
            raise UpstreamFailure(f"{self.display_name} API returned an unreadable response") from decode_err

    @abstractmethod
    async def transcribe_file(self, audio_path: str, mime_type: str) -> ProviderTranscript:
        """Transcribe a local audio file."""

    async def transcribe_url(self, audio_url: str) -> ProviderTranscript:
        raise UpstreamFailure(f"{self.display_name} cannot transcribe from a URL")

    async def close_client(self):
        """Closes the httpx client. Call this during application shutdown."""
        if self.http_client:
            await self.http_client.aclose()
            logger.info(f"{self.display_name} HTTPX client closed.")


class WhisperTranscriptionService(BaseTranscriptionService):
    """OpenAI Whisper: uploads the file and reads word-level timings."""

    name = "whisper"
    display_name = "OpenAI"

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(settings.openai_api_key, settings.PROVIDER_TIMEOUT_SECONDS, http_client)
        self.model = settings.WHISPER_MODEL
        self.url = f"{settings.OPENAI_BASE_URL.rstrip('/')}/audio/transcriptions"

    async def transcribe_file(self, audio_path: str, mime_type: str) -> ProviderTranscript:
        self.ensure_configured()
        path = Path(audio_path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found at path: {audio_path}")

        async with aiofiles.open(path, "rb") as audio_file:
            audio_content = await audio_file.read()
        logger.info(f"Sending {len(audio_content)} bytes to Whisper ({self.model}) for {path.name}")

        result = await self._send(
            "POST",
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            files={"file": (path.name, audio_content, mime_type)},
            data={
                "model": self.model,
                "response_format": "verbose_json",
                "timestamp_granularities[]": ["word", "segment"],
            },
        )
        return self.parse_response(result)

    @staticmethod
    def parse_response(result: Dict[str, Any]) -> ProviderTranscript:
        words = [
            WordToken(text=str(w.get("word", "")).strip(), start=float(w.get("start", 0)), end=float(w.get("end", 0)))
            for w in result.get("words") or []
            if str(w.get("word", "")).strip()
        ]
        if words:
            tokens = tokens_from_words(words)
        else:
            # Older models return only segment timings; treat them as speakerless utterances
            logger.warning("Whisper response has no word timings, falling back to segments")
            tokens = tokens_from_utterances(
                UtteranceToken(text=str(s.get("text", "")).strip(), start=float(s.get("start", 0)), end=float(s.get("end", 0)))
                for s in result.get("segments") or []
                if str(s.get("text", "")).strip()
            )
        text = (result.get("text") or "").strip()
        logger.info(f"Whisper transcription parsed: {len(tokens)} tokens, text length {len(text)}")
        return ProviderTranscript(text=text, tokens=tokens, language=result.get("language"))


class AssemblyAITranscriptionService(BaseTranscriptionService):
    """AssemblyAI: uploads (or references) audio, submits a job and polls until it finishes."""

    name = "assemblyai"
    display_name = "AssemblyAI"
    supports_url = True

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(settings.assembly_api_key, settings.PROVIDER_TIMEOUT_SECONDS, http_client)
        self.base_url = settings.ASSEMBLYAI_BASE_URL.rstrip("/")
        self.language_code = settings.ASSEMBLYAI_LANGUAGE_CODE
        # How often to poll for status (in seconds) and how many times before giving up
        self.polling_interval = settings.ASSEMBLYAI_POLL_INTERVAL
        self.max_polling_attempts = settings.ASSEMBLYAI_MAX_POLLS

    @property
    def headers(self) -> Dict[str, str]:
        return {"authorization": self.api_key or ""}

    async def transcribe_file(self, audio_path: str, mime_type: str) -> ProviderTranscript:
        self.ensure_configured()
        upload_url = await self._upload(audio_path)
        return await self.transcribe_url(upload_url)

    async def transcribe_url(self, audio_url: str) -> ProviderTranscript:
        self.ensure_configured()
        job_id = await self._submit_job(audio_url)
        logger.info(f"AssemblyAI job submitted successfully. Job ID: {job_id}")
        result = await self._poll_job_status(job_id)
        return self.parse_response(result)

    async def _upload(self, audio_path: str) -> str:
        path = Path(audio_path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found at path: {audio_path}")
        async with aiofiles.open(path, "rb") as audio_file:
            audio_content = await audio_file.read()
        logger.info(f"Uploading {len(audio_content)} bytes to AssemblyAI")

        data = await self._send(
            "POST",
            f"{self.base_url}/upload",
            headers={**self.headers, "content-type": "application/octet-stream"},
            content=audio_content,
        )
        upload_url = data.get("upload_url")
        if not upload_url:
            raise UpstreamFailure("AssemblyAI upload failed: no upload URL returned")
        return upload_url

    async def _submit_job(self, audio_url: str) -> str:
        payload = {
            "audio_url": audio_url,
            "language_code": self.language_code,
            "format_text": True,
            "punctuate": True,
            "speaker_labels": True,
        }
        data = await self._send("POST", f"{self.base_url}/transcript", headers=self.headers, json=payload)
        job_id = data.get("id")
        if not job_id:
            error_msg = data.get("error", "Unknown error from AssemblyAI API")
            logger.error(f"AssemblyAI API did not return job ID: {error_msg}")
            raise UpstreamFailure(f"AssemblyAI API error: {error_msg}")
        return job_id

    async def _poll_job_status(self, job_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/transcript/{job_id}"
        for attempt in range(1, self.max_polling_attempts + 1):
            data = await self._send("GET", url, headers=self.headers)
            status = data.get("status")
            logger.info(f"AssemblyAI Job ID {job_id} status: {status} (Attempt {attempt}/{self.max_polling_attempts})")

            if status == "completed":
                return data
            if status == "error":
                error_msg = data.get("error", "AssemblyAI job failed")
                logger.error(f"AssemblyAI job {job_id} failed: {error_msg}")
                raise UpstreamFailure(f"AssemblyAI transcription failed: {error_msg}")
            await asyncio.sleep(self.polling_interval)

        logger.error(f"Polling timed out after {self.max_polling_attempts} attempts for Job ID {job_id}")
        raise UpstreamFailure("AssemblyAI transcription timed out - please try again")

    @staticmethod
    def parse_response(result: Dict[str, Any]) -> ProviderTranscript:
        utterances = [
            UtteranceToken(
                text=u.get("text", ""),
                start=float(u.get("start", 0)) / 1000,  # milliseconds to seconds
                end=float(u.get("end", 0)) / 1000,
                speaker_id=u.get("speaker"),
                confidence=u.get("confidence") or DEFAULT_UTTERANCE_CONFIDENCE,
            )
            for u in result.get("utterances") or []
        ]
        text = (result.get("text") or "").strip()
        logger.info(f"AssemblyAI transcription parsed: {len(utterances)} utterances, text length {len(text)}")
        return ProviderTranscript(
            text=text,
            tokens=tokens_from_utterances(utterances),
            language=result.get("language_code"),
        )


def build_transcription_services(
    settings: Settings, http_client: Optional[httpx.AsyncClient] = None
) -> Dict[str, BaseTranscriptionService]:
    """Construct one adapter per provider, keyed by provider name."""
    services = [
        WhisperTranscriptionService(settings, http_client),
        AssemblyAITranscriptionService(settings, http_client),
    ]
    return {service.name: service for service in services}
