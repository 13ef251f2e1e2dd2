import asyncio
import os
import time
import uuid

from ..exceptions import StorageError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def summary_audio_key() -> str:
    return f"summary-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.mp3"


class LocalAudioStorage:
    """Stores summary MP3s in a directory that the web app serves publicly"""

    def __init__(self, directory: str = "audio", base_url: str = "/audio"):
        self.directory = directory
        self.base_url = base_url.rstrip("/")

    def _ensure_dirs(self):
        os.makedirs(self.directory, exist_ok=True)

    def _write(self, key: str, data: bytes) -> str:
        self._ensure_dirs()
        path = os.path.join(self.directory, key)
        with open(path, "wb") as f:
            f.write(data)
        return path

    async def put(self, key: str, data: bytes) -> str:
        """Persists data under key and returns its public URL"""
        try:
            path = await asyncio.to_thread(self._write, key, data)
        except OSError as e:
            raise StorageError(f"Failed to store audio {key}: {e}") from e
        logger.info("Stored %d bytes of audio at %s", len(data), path)
        return f"{self.base_url}/{key}"
