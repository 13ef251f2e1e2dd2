"""Tests for the speech-to-text adapters."""

import json
import unittest
from types import SimpleNamespace
from unittest.mock import patch

import httpx

from podsummary.exceptions import ConfigurationError, TranscriptionError
from podsummary.processors.transcriber import (
    FIREWORKS_API_URL,
    FireworksTranscriber,
    WhisperTranscriber,
    make_transcriber,
)
from podsummary.utils.config import Credentials

AUDIO_URL = "https://media.example.com/episode.mp3"
AUDIO = b"\xff\xfb" * 50


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestFireworksTranscriber(unittest.IsolatedAsyncioTestCase):

    credentials = Credentials(fireworks_api_key="fw-test")

    async def test_downloads_and_transcribes(self):
        seen = {}

        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, content=AUDIO)
            seen["auth"] = request.headers["authorization"]
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json={"text": " Hello from the episode. ", "duration": 12.5})

        async with mock_client(handler) as client:
            text = await FireworksTranscriber(client).transcribe(AUDIO_URL, self.credentials)

        self.assertEqual(text, "Hello from the episode.")
        self.assertEqual(seen["auth"], "Bearer fw-test")
        self.assertEqual(seen["url"], FIREWORKS_API_URL)
        self.assertIn(b"whisper-v3-turbo", seen["body"])
        self.assertIn(AUDIO, seen["body"])

    async def test_download_failure(self):
        async with mock_client(lambda request: httpx.Response(404)) as client:
            with self.assertRaises(TranscriptionError) as ctx:
                await FireworksTranscriber(client).transcribe(AUDIO_URL, self.credentials)
        self.assertIn("Failed to download audio: 404", str(ctx.exception))

    async def test_upstream_error_includes_status_and_body(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, content=AUDIO)
            return httpx.Response(500, text="model overloaded")

        async with mock_client(handler) as client:
            with self.assertRaises(TranscriptionError) as ctx:
                await FireworksTranscriber(client).transcribe(AUDIO_URL, self.credentials)
        self.assertIn("500", str(ctx.exception))
        self.assertIn("model overloaded", str(ctx.exception))

    async def test_empty_transcript_is_an_error(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, content=AUDIO)
            return httpx.Response(200, content=json.dumps({"text": "   "}))

        async with mock_client(handler) as client:
            with self.assertRaises(TranscriptionError):
                await FireworksTranscriber(client).transcribe(AUDIO_URL, self.credentials)


class FakeTranscriptions:
    def __init__(self):
        self.calls = []

    async def create(self, file, model, temperature, prompt=None):
        self.calls.append(SimpleNamespace(file=file, model=model, prompt=prompt))
        return SimpleNamespace(text=f"part {len(self.calls)} of the show")


class TestWhisperTranscriber(unittest.IsolatedAsyncioTestCase):

    credentials = Credentials(openai_api_key="sk-test")

    async def test_small_file_single_request(self):
        transcriptions = FakeTranscriptions()
        whisper = SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))

        async with mock_client(lambda request: httpx.Response(200, content=AUDIO)) as client:
            with patch("podsummary.processors.transcriber.openai.AsyncOpenAI", return_value=whisper):
                text = await WhisperTranscriber(client).transcribe(AUDIO_URL, self.credentials)

        self.assertEqual(text, "part 1 of the show")
        self.assertEqual(len(transcriptions.calls), 1)
        self.assertEqual(transcriptions.calls[0].model, "whisper-1")
        self.assertIsNone(transcriptions.calls[0].prompt)

    async def test_large_file_chunked_with_continuity_prompt(self):
        transcriptions = FakeTranscriptions()
        whisper = SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))
        transcriber = WhisperTranscriber(max_file_size=40, chunk_size=30)

        async with mock_client(lambda request: httpx.Response(200, content=AUDIO)) as client:
            transcriber.http_client = client
            with patch("podsummary.processors.transcriber.openai.AsyncOpenAI", return_value=whisper):
                text = await transcriber.transcribe(AUDIO_URL, self.credentials)

        # 100 bytes in 30 byte slices
        self.assertEqual(len(transcriptions.calls), 4)
        self.assertEqual(text, "part 1 of the show part 2 of the show part 3 of the show part 4 of the show")
        self.assertIsNone(transcriptions.calls[0].prompt)
        self.assertEqual(transcriptions.calls[1].prompt, "part 1 of the show")
        self.assertEqual(transcriptions.calls[3].file[0], "chunk-3.mp3")
        self.assertEqual(b"".join(call.file[1] for call in transcriptions.calls), AUDIO)

    async def test_whisper_client_reused(self):
        whisper = SimpleNamespace(audio=SimpleNamespace(transcriptions=FakeTranscriptions()))

        async with mock_client(lambda request: httpx.Response(200, content=AUDIO)) as client:
            transcriber = WhisperTranscriber(client)
            with patch("podsummary.processors.transcriber.openai.AsyncOpenAI", return_value=whisper) as client_cls:
                await transcriber.transcribe(AUDIO_URL, self.credentials)
                await transcriber.transcribe(AUDIO_URL, self.credentials)

        client_cls.assert_called_once_with(api_key="sk-test")


class TestMakeTranscriber(unittest.TestCase):

    def test_prefers_fireworks(self):
        transcriber = make_transcriber(Credentials(openai_api_key="sk", fireworks_api_key="fw"))
        self.assertIsInstance(transcriber, FireworksTranscriber)

    def test_falls_back_to_whisper(self):
        self.assertIsInstance(make_transcriber(Credentials(openai_api_key="sk")), WhisperTranscriber)

    def test_requires_credentials(self):
        with self.assertRaises(ConfigurationError):
            make_transcriber(Credentials())


if __name__ == "__main__":
    unittest.main()
