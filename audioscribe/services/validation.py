"""Upload checks run before any paid provider call."""

from audioscribe.core.errors import UnsupportedMediaType, PayloadTooLarge

ALLOWED_MIME_TYPES = frozenset({
    "audio/mpeg",
    "audio/wav",
    "audio/mp4",
    "audio/m4a",
    "audio/ogg",
})

MAX_UPLOAD_BYTES = 25 * 1024 * 1024  # 25MB


def validate_upload(mime_type: str, size: int) -> None:
    """Raise if the declared type is not an allowed audio type or the size exceeds 25MB."""
    if mime_type not in ALLOWED_MIME_TYPES:
        raise UnsupportedMediaType(f"Invalid file type: {mime_type or 'unknown'}")
    if size > MAX_UPLOAD_BYTES:
        raise PayloadTooLarge(f"File too large: {size} bytes (limit {MAX_UPLOAD_BYTES} bytes)")
