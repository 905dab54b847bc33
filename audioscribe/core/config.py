# audioscribe/core/config.py

import json
from typing import List, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables or .env file.
    BaseSettings automatically reads environment variables into these fields.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Core application settings
    PROJECT_NAME: str = "AudioScribe"
    BACKEND_CORS_ORIGINS: Optional[List[str]] = None
    FRONTEND_URL: str = "http://localhost:3000"
    DATABASE_URL: str = "sqlite:///./audioscribe.db"
    UPLOADS_DIR: str = "tmp"
    LOG_LEVEL: str = "INFO"

    # Provider credentials
    openai_api_key: Optional[str] = None  # Whisper transcription and chat completions
    assembly_api_key: Optional[str] = None  # AssemblyAI transcription with speaker labels

    # Provider endpoints and models
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    ASSEMBLYAI_BASE_URL: str = "https://api.assemblyai.com/v2"
    WHISPER_MODEL: str = "whisper-1"
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"
    DEFAULT_PROVIDER: str = "whisper"  # whisper or assemblyai
    ASSEMBLYAI_LANGUAGE_CODE: str = "en"

    # Provider call limits
    PROVIDER_TIMEOUT_SECONDS: float = 120.0
    ASSEMBLYAI_POLL_INTERVAL: float = 3.0
    ASSEMBLYAI_MAX_POLLS: int = 200

    # Transcript shaping
    SEGMENT_MAX_CHARS: int = 200
    SUMMARY_MAX_INPUT_CHARS: int = 48000

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from JSON string if needed."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If it's a single origin string, return as list
                return [v]
        return v

    @field_validator('DEFAULT_PROVIDER')
    @classmethod
    def check_default_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("whisper", "assemblyai"):
            raise ValueError(f"Unknown transcription provider: {v}")
        return v

    @property
    def cors_origins(self) -> List[str]:
        """Configured origins, falling back to the frontend URL."""
        origins = list(self.BACKEND_CORS_ORIGINS or [])
        if self.FRONTEND_URL and self.FRONTEND_URL not in origins:
            origins.append(self.FRONTEND_URL)
        return origins


# Create a global settings instance for use by the application entry point
settings = Settings()
