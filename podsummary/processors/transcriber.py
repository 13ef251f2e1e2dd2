import time
from typing import Dict, List, Optional

import httpx
import openai

from ..exceptions import ConfigurationError, TranscriptionError
from ..utils.config import FIREWORKS_COST_PER_MINUTE, WHISPER_COST_PER_MINUTE, Credentials
from ..utils.logger import get_logger

logger = get_logger(__name__)

FIREWORKS_API_URL = "https://audio-turbo.us-virginia-1.direct.fireworks.ai/v1/audio/transcriptions"
FIREWORKS_MODEL = "whisper-v3-turbo"

WHISPER_MODEL = "whisper-1"
WHISPER_MAX_FILE_SIZE = 25 * 1024 * 1024
WHISPER_CHUNK_SIZE = 20 * 1024 * 1024
CONTINUITY_PROMPT_CHARS = 200

# Long episodes take minutes to upload and transcribe
TRANSCRIPTION_TIMEOUT = httpx.Timeout(connect=10.0, read=900.0, write=300.0, pool=10.0)


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}MB"


class BaseTranscriber:
    cost_per_minute = 0.0

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client

    async def _download(self, client: httpx.AsyncClient, audio_url: str) -> bytes:
        started = time.monotonic()
        try:
            response = await client.get(audio_url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Failed to download audio: {e}") from e
        if response.status_code >= 400:
            raise TranscriptionError(
                f"Failed to download audio: {response.status_code} {response.reason_phrase}"
            )
        data = response.content
        logger.info("Audio downloaded: %s in %.1fs", _megabytes(len(data)), time.monotonic() - started)
        return data

    async def transcribe(self, audio_url: str, credentials: Credentials) -> str:
        if self.http_client is not None:
            return await self._transcribe(self.http_client, audio_url, credentials)
        async with httpx.AsyncClient(timeout=TRANSCRIPTION_TIMEOUT) as client:
            return await self._transcribe(client, audio_url, credentials)

    async def _transcribe(self, client: httpx.AsyncClient, audio_url: str, credentials: Credentials) -> str:
        raise NotImplementedError


class FireworksTranscriber(BaseTranscriber):
    """Hosted whisper-v3-turbo; accepts whole episodes so no chunking is needed"""

    cost_per_minute = FIREWORKS_COST_PER_MINUTE

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, api_url: str = FIREWORKS_API_URL):
        super().__init__(http_client)
        self.api_url = api_url

    async def _transcribe(self, client: httpx.AsyncClient, audio_url: str, credentials: Credentials) -> str:
        logger.info("Starting Fireworks transcription for %s", audio_url)
        audio = await self._download(client, audio_url)

        started = time.monotonic()
        try:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {credentials.fireworks_api_key}"},
                data={
                    "model": FIREWORKS_MODEL,
                    "response_format": "verbose_json",
                    "temperature": "0",
                },
                files={"file": ("episode.mp3", audio, "audio/mpeg")},
            )
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Fireworks AI transcription failed: {e}") from e

        if response.status_code >= 400:
            logger.error("Fireworks request failed with status %s: %s", response.status_code, response.text)
            raise TranscriptionError(
                f"Fireworks AI transcription failed ({response.status_code}): {response.text}"
            )

        transcript = (response.json().get("text") or "").strip()
        if not transcript:
            raise TranscriptionError("Fireworks AI returned an empty transcript")

        logger.info(
            "Fireworks transcription finished in %.1fs: %d characters",
            time.monotonic() - started,
            len(transcript),
        )
        return transcript


class WhisperTranscriber(BaseTranscriber):
    """OpenAI whisper-1, which caps uploads at 25MB.

    Larger files are cut into byte slices and transcribed in order, each slice
    prompted with the tail of the previous transcript.
    """

    cost_per_minute = WHISPER_COST_PER_MINUTE

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        max_file_size: int = WHISPER_MAX_FILE_SIZE,
        chunk_size: int = WHISPER_CHUNK_SIZE,
    ):
        super().__init__(http_client)
        self.max_file_size = max_file_size
        self.chunk_size = chunk_size
        self._clients: Dict[str, openai.AsyncOpenAI] = {}

    def _whisper(self, api_key: str) -> openai.AsyncOpenAI:
        if api_key not in self._clients:
            self._clients[api_key] = openai.AsyncOpenAI(api_key=api_key)
        return self._clients[api_key]

    async def _transcribe(self, client: httpx.AsyncClient, audio_url: str, credentials: Credentials) -> str:
        logger.info("Starting Whisper transcription for %s", audio_url)
        audio = await self._download(client, audio_url)
        whisper = self._whisper(credentials.openai_api_key)

        if len(audio) > self.max_file_size:
            transcript = await self._transcribe_chunks(whisper, audio)
        else:
            transcript = await self._create(whisper, audio, "episode.mp3")

        transcript = transcript.strip()
        if not transcript:
            raise TranscriptionError("Whisper returned an empty transcript")
        return transcript

    async def _create(self, whisper: openai.AsyncOpenAI, data: bytes, filename: str, prompt: Optional[str] = None) -> str:
        kwargs = {}
        if prompt:
            kwargs["prompt"] = prompt
        try:
            result = await whisper.audio.transcriptions.create(
                file=(filename, data, "audio/mpeg"),
                model=WHISPER_MODEL,
                temperature=0,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise TranscriptionError(f"Whisper transcription failed: {e}") from e
        return result.text

    async def _transcribe_chunks(self, whisper: openai.AsyncOpenAI, audio: bytes) -> str:
        chunks = [audio[i:i + self.chunk_size] for i in range(0, len(audio), self.chunk_size)]
        logger.info("Audio is %s, splitting into %d chunks", _megabytes(len(audio)), len(chunks))

        transcripts: List[str] = []
        for i, chunk in enumerate(chunks):
            logger.info("Transcribing chunk %d/%d (%s)", i + 1, len(chunks), _megabytes(len(chunk)))
            prompt = transcripts[-1][-CONTINUITY_PROMPT_CHARS:] if transcripts else None
            transcripts.append(await self._create(whisper, chunk, f"chunk-{i}.mp3", prompt))

        return " ".join(transcripts)


def make_transcriber(credentials: Credentials, http_client: Optional[httpx.AsyncClient] = None) -> BaseTranscriber:
    """Prefers Fireworks when its key is configured, otherwise falls back to Whisper"""
    if credentials.fireworks_api_key:
        return FireworksTranscriber(http_client)
    if credentials.openai_api_key:
        return WhisperTranscriber(http_client)
    raise ConfigurationError("No transcription provider credentials configured")
