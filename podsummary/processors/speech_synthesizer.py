import asyncio
import re
from typing import Dict, List

import openai

from ..exceptions import SynthesisError
from ..utils.config import WORDS_PER_MINUTE, Credentials
from ..utils.logger import get_logger
from ..utils.text import count_words, estimate_speaking_duration

logger = get_logger(__name__)

TTS_MODEL = "tts-1"
TTS_VOICE = "alloy"
MAX_TTS_CHARS = 4096
TTS_CHUNK_SIZE = 4000

MIN_SPEED = 0.75
MAX_SPEED = 1.25
SPEED_TOLERANCE = 0.15

# Like split_sentences, but keeps a trailing fragment with no terminator
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")


def compute_speed(estimated_seconds: float, target_seconds: float) -> float:
    """Playback multiplier that pulls the spoken length toward the target"""
    if target_seconds <= 0:
        return 1.0
    ratio = estimated_seconds / target_seconds
    if ratio > 1 + SPEED_TOLERANCE:
        speed = min(MAX_SPEED, ratio)
    elif ratio < 1 - SPEED_TOLERANCE:
        speed = max(MIN_SPEED, ratio)
    else:
        speed = 1.0
    return min(MAX_SPEED, max(MIN_SPEED, speed))


def _split_long_sentence(sentence: str, max_chars: int) -> List[str]:
    pieces: List[str] = []
    current = ""
    for word in sentence.split():
        if len(word) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.extend(word[i:i + max_chars] for i in range(0, len(word), max_chars))
            continue
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chars:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def split_text_into_chunks(text: str, max_chars: int = TTS_CHUNK_SIZE) -> List[str]:
    """Greedily packs whole sentences into chunks of at most max_chars"""
    sentences = _SENTENCE_RE.findall(text) or [text]
    chunks: List[str] = []
    current = ""

    for sentence in sentences:
        if len(sentence.strip()) > max_chars:
            if current.strip():
                chunks.append(current.strip())
            current = ""
            chunks.extend(_split_long_sentence(sentence, max_chars))
            continue
        if current and len(current) + len(sentence) > max_chars:
            chunks.append(current.strip())
            current = sentence
        else:
            current += sentence

    if current.strip():
        chunks.append(current.strip())
    return chunks


class SpeechSynthesizer:
    def __init__(
        self,
        model: str = TTS_MODEL,
        voice: str = TTS_VOICE,
        max_chars: int = MAX_TTS_CHARS,
        chunk_size: int = TTS_CHUNK_SIZE,
        words_per_minute: int = WORDS_PER_MINUTE,
    ):
        self.model = model
        self.voice = voice
        self.max_chars = max_chars
        self.chunk_size = chunk_size
        self.words_per_minute = words_per_minute
        self._clients: Dict[str, openai.AsyncOpenAI] = {}

    def _client(self, api_key: str) -> openai.AsyncOpenAI:
        if api_key not in self._clients:
            self._clients[api_key] = openai.AsyncOpenAI(api_key=api_key)
        return self._clients[api_key]

    async def synthesize(self, text: str, target_duration_seconds: float, credentials: Credentials) -> bytes:
        """Converts text to MP3 bytes, chunking text longer than the provider allows"""
        estimated = estimate_speaking_duration(count_words(text), self.words_per_minute)
        speed = compute_speed(estimated, target_duration_seconds)
        logger.info(
            "Estimated %ds of speech for a %ds target, speed %.2f",
            estimated,
            target_duration_seconds,
            speed,
        )

        client = self._client(credentials.openai_api_key)
        if len(text) <= self.max_chars:
            return await self._speak(client, text, speed)

        chunks = split_text_into_chunks(text, self.chunk_size)
        logger.info("Text is %d characters, synthesizing %d chunks in parallel", len(text), len(chunks))

        # gather preserves argument order regardless of completion order
        buffers = await asyncio.gather(
            *(self._speak(client, chunk, speed) for chunk in chunks),
            return_exceptions=True,
        )
        for buffer in buffers:
            if isinstance(buffer, BaseException):
                raise buffer
        return b"".join(buffers)

    async def _speak(self, client: openai.AsyncOpenAI, text: str, speed: float) -> bytes:
        try:
            response = await client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                speed=speed,
            )
        except openai.OpenAIError as e:
            raise SynthesisError(f"Speech synthesis failed: {e}") from e
        return response.content
