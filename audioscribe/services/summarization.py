# audioscribe/services/summarization.py
import logging
from typing import Optional

import httpx

from audioscribe.core.config import Settings
from audioscribe.core.errors import UpstreamConfigError, UpstreamFailure
from audioscribe.services.transcription import describe_http_error

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that creates concise summaries of transcribed audio content."
QA_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions about transcribed audio content. "
    "Provide accurate, concise answers based only on the information in the transcript. "
    "Any other questions unrelated to the transcript will not be answered."
)
NO_ANSWER = "I could not generate an answer to your question."


class SummarizationService:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.api_key = settings.openai_api_key
        self.model = settings.OPENAI_CHAT_MODEL
        self.summary_max_tokens = 300
        self.answer_max_tokens = 400
        self.max_input_chars = settings.SUMMARY_MAX_INPUT_CHARS
        self.base_url = f"{settings.OPENAI_BASE_URL.rstrip('/')}/chat/completions"
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_SECONDS, connect=10.0)
        )

        if not self.api_key:
            logger.warning("OpenAI API Key not configured. Summarization will be skipped.")
        else:
            logger.info("OpenAI chat client initialized successfully.")

    def _truncate(self, text: str) -> str:
        if len(text) > self.max_input_chars:
            logger.warning(f"Input text too long ({len(text)} chars), truncating to {self.max_input_chars}")
            return text[:self.max_input_chars] + "..."
        return text

    async def summarize(self, text: str, user_prompt: Optional[str] = None) -> Optional[str]:
        """
        Generates a bullet-point summary of the transcript, also answering
        ``user_prompt`` when one was supplied with the upload.
        Returns the summary string or None if summarization fails or is skipped.
        """
        if not self.api_key:
            logger.info("Skipping summarization as OpenAI API key is not configured.")
            return None
        if not text or text.strip() == "":
            logger.info("Skipping summarization for empty text.")
            return None

        transcript = self._truncate(text)
        if user_prompt and user_prompt.strip():
            # Limit prompt length
            question = user_prompt.strip()[:1000]
            content = (
                f'Please summarize this transcript and also answer this question: "{question}"\n\n'
                f"Transcript: {transcript}"
            )
        else:
            content = (
                "Please create a concise summary of this transcript in 3-5 bullet points highlighting "
                f"the key topics and main points discussed.\n\nTranscript: {transcript}\n\n"
                "Any other questions unrelated to the transcript will not be answered."
            )

        try:
            summary = await self._complete(SUMMARY_SYSTEM_PROMPT, content, self.summary_max_tokens)
        except Exception as e:
            logger.error(f"Summary generation failed, continuing without summary: {e}", exc_info=True)
            return None
        if summary:
            logger.info(f"Received summary: '{summary[:100]}...'")
        else:
            logger.warning("OpenAI API response content was empty.")
        return summary or None

    async def answer_question(self, text: str, question: str) -> str:
        """Answers ``question`` from the transcript alone."""
        if not self.api_key:
            raise UpstreamConfigError("OpenAI API key not configured")

        content = (
            "Please answer this question based on the following transcript:\n\n"
            f"Question: {question}\n\nTranscript: {self._truncate(text)}"
        )
        answer = await self._complete(QA_SYSTEM_PROMPT, content, self.answer_max_tokens)
        return answer or NO_ANSWER

    async def _complete(self, system_prompt: str, user_content: str, max_tokens: int) -> Optional[str]:
        """Run one chat completion and return the trimmed message content, if any."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "max_tokens": max_tokens,
        }

        try:
            response = await self.http_client.post(self.base_url, headers=headers, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as http_err:
            message = describe_http_error("OpenAI", http_err)
            logger.error(message)
            raise UpstreamFailure(message) from http_err
        except httpx.RequestError as req_err:
            logger.error(f"Network error calling OpenAI API: {req_err}")
            raise UpstreamFailure("Failed to reach the language model provider") from req_err
        except ValueError as decode_err:
            raise UpstreamFailure("OpenAI API returned an unreadable response") from decode_err

        choices = result.get("choices") if isinstance(result, dict) else None
        if not isinstance(choices, list):
            logger.error(f"OpenAI API response has unexpected shape: {str(result)[:200]}")
            raise UpstreamFailure("OpenAI API returned an unexpected response")
        if not choices:
            return None
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if content is not None and not isinstance(content, str):
            raise UpstreamFailure("OpenAI API returned an unexpected response")
        return content.strip() if content else None

    async def close_client(self):
        if self.http_client:
            await self.http_client.aclose()
            logger.info("OpenAI chat HTTPX client closed.")
