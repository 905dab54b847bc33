"""File handling utility functions."""

import logging
import uuid
from pathlib import Path
from typing import Union

import aiofiles

logger = logging.getLogger(__name__)


def ensure_directory_exists(directory_path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, create it if it doesn't.

    Args:
        directory_path: Path to the directory

    Returns:
        Path object of the directory
    """
    path = Path(directory_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def generate_unique_filename(original_filename: str) -> str:
    """
    Generate a collision-resistant stored name that keeps the original name readable.

    Args:
        original_filename: Name the client uploaded the file under

    Returns:
        ``<uuid4>-<base name of original_filename>``
    """
    return f"{uuid.uuid4()}-{Path(original_filename).name}"


async def save_upload(content: bytes, directory: Union[str, Path], filename: str) -> Path:
    """
    Write uploaded bytes to ``directory/filename``.

    Args:
        content: Raw file bytes
        directory: Target directory, created if missing
        filename: Name to store the file under

    Returns:
        Path of the written file
    """
    path = ensure_directory_exists(directory) / filename
    async with aiofiles.open(path, "wb") as out_file:
        await out_file.write(content)
    logger.info(f"Saved upload to temp file: {path} ({len(content)} bytes)")
    return path


def safe_remove_file(file_path: Union[str, Path]) -> bool:
    """
    Safely remove a file, handling errors gracefully.

    Args:
        file_path: Path to the file to remove

    Returns:
        True if file was removed or didn't exist, False on error
    """
    try:
        path = Path(file_path)
        if path.exists():
            path.unlink()
            logger.info(f"Removed file: {file_path}")
        return True
    except OSError as e:
        logger.error(f"Error removing file {file_path}: {e}")
        return False
