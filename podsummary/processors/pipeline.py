import asyncio
import math
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional, Tuple

from ..exceptions import TranscriptionError
from ..models.episode import Episode, SummaryRequest
from ..models.summary import ProcessingProgress, SummaryResult
from ..utils.config import Pricing, WORDS_PER_MINUTE, Credentials
from ..utils.logger import get_logger
from ..utils.text import count_words
from .audio_storage import summary_audio_key
from .cost_estimator import calculate_actual_costs
from .transcript_finder import TranscriptFinder
from .truncator import truncate_transcript, validate_cutoff_timestamp

logger = get_logger(__name__)

ProgressCallback = Callable[[ProcessingProgress], Awaitable[None]]

PROGRESS_TRANSCRIBE_START = 5
PROGRESS_TRANSCRIBE_END = 45
PROGRESS_SUMMARIZE = 50
PROGRESS_SYNTHESIZE = 75
PROGRESS_STORE = 90

# Assumed length of an episode whose duration is unknown
DEFAULT_EPISODE_MINUTES = 60


@dataclass
class _EpisodeTranscript:
    episode: Episode
    transcript: str
    minutes_transcribed: float
    seconds: float


class SummaryPipeline:
    """Runs one summary request from transcription through stored audio.

    Transcription of all episodes happens concurrently; every other stage
    runs in order and reports progress before it starts.
    """

    def __init__(
        self,
        transcriber,
        summarizer,
        synthesizer,
        storage,
        pricing: Optional[Pricing] = None,
        words_per_minute: int = WORDS_PER_MINUTE,
        transcript_finder: Optional[TranscriptFinder] = None,
    ):
        self.transcriber = transcriber
        self.summarizer = summarizer
        self.synthesizer = synthesizer
        self.storage = storage
        self.pricing = pricing or Pricing()
        self.words_per_minute = words_per_minute
        self.transcript_finder = transcript_finder

    async def run(
        self,
        request: SummaryRequest,
        credentials: Credentials,
        progress_callback: ProgressCallback,
    ) -> SummaryResult:
        started = time.monotonic()
        timings: List[Tuple[str, float]] = []
        episodes = request.episodes

        await progress_callback(ProcessingProgress(
            step="Transcribing episodes",
            percentage=PROGRESS_TRANSCRIBE_START,
            message=f"Transcribing {len(episodes)} episode(s) in parallel...",
        ))

        stage_started = time.monotonic()
        transcribed = await self._transcribe_all(episodes, credentials, progress_callback)
        timings.append(("All episodes transcribed (parallel)", time.monotonic() - stage_started))
        for index, item in enumerate(transcribed, start=1):
            timings.append((f"Transcription (ep {index}: {item.episode.title})", item.seconds))

        episodes_with_transcripts = self._apply_cutoff(transcribed)

        await progress_callback(ProcessingProgress(
            step="Generating summary",
            percentage=PROGRESS_SUMMARIZE,
            message="Creating text summary...",
        ))
        stage_started = time.monotonic()
        summary_text = await self.summarizer.summarize(
            episodes_with_transcripts, request.target_duration, credentials
        )
        timings.append(("Summarization", time.monotonic() - stage_started))

        await progress_callback(ProcessingProgress(
            step="Converting to speech",
            percentage=PROGRESS_SYNTHESIZE,
            message="Generating audio...",
        ))
        target_seconds = request.target_duration * 60
        stage_started = time.monotonic()
        audio = await self.synthesizer.synthesize(summary_text, target_seconds, credentials)
        timings.append(("Speech synthesis", time.monotonic() - stage_started))

        await progress_callback(ProcessingProgress(
            step="Storing audio",
            percentage=PROGRESS_STORE,
            message="Uploading to storage...",
        ))
        stage_started = time.monotonic()
        audio_url = await self.storage.put(summary_audio_key(), audio)
        timings.append(("Audio upload", time.monotonic() - stage_started))

        self._log_timings(timings, time.monotonic() - started)

        minutes_transcribed = sum(item.minutes_transcribed for item in transcribed)
        cost_breakdown = calculate_actual_costs(
            minutes_transcribed,
            len(summary_text),
            pricing=self.pricing,
            cost_per_minute=getattr(self.transcriber, "cost_per_minute", None),
        )
        actual_duration = math.floor(count_words(summary_text) / self.words_per_minute) * 60

        return SummaryResult(
            audio_url=audio_url,
            summary_text=summary_text,
            actual_duration=actual_duration,
            target_duration=target_seconds,
            cost_breakdown=cost_breakdown,
        )

    async def _transcribe_all(
        self,
        episodes: List[Episode],
        credentials: Credentials,
        progress_callback: ProgressCallback,
    ) -> List[_EpisodeTranscript]:
        total = len(episodes)
        completed = 0
        progress_lock = asyncio.Lock()

        async def report(episode: Episode, index: int):
            nonlocal completed
            # Serialized so one job's store record is never written concurrently
            async with progress_lock:
                completed += 1
                span = PROGRESS_TRANSCRIBE_END - PROGRESS_TRANSCRIBE_START
                await progress_callback(ProcessingProgress(
                    step="Transcribing episodes",
                    percentage=PROGRESS_TRANSCRIBE_START + round(span * completed / total),
                    message=f"Transcribed {completed} of {total}: {episode.title}",
                    episode_index=index,
                    total_episodes=total,
                ))

        async def transcribe_one(index: int, episode: Episode) -> _EpisodeTranscript:
            episode_started = time.monotonic()
            item = await self._transcribe_episode(episode, credentials)
            item.seconds = time.monotonic() - episode_started
            await report(episode, index)
            return item

        results = await asyncio.gather(
            *(transcribe_one(i, episode) for i, episode in enumerate(episodes)),
            return_exceptions=True,
        )

        for episode, result in zip(episodes, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error("Transcription failed for %s: %s", episode.title, result)
                raise TranscriptionError(
                    f"Failed to transcribe episode: {episode.title}. {result}"
                ) from result
        return list(results)

    async def _transcribe_episode(self, episode: Episode, credentials: Credentials) -> _EpisodeTranscript:
        if self.transcript_finder is not None:
            found = await self.transcript_finder.find(episode)
            if found is not None:
                return _EpisodeTranscript(episode, found.text, 0.0, 0.0)

        if not episode.audio_url:
            raise TranscriptionError(f"No audio URL available for episode: {episode.title}")

        transcript = await self.transcriber.transcribe(episode.audio_url, credentials)
        minutes = episode.duration / 60 if episode.duration else DEFAULT_EPISODE_MINUTES
        return _EpisodeTranscript(episode, transcript, minutes, 0.0)

    def _apply_cutoff(self, transcribed: List[_EpisodeTranscript]) -> List[Episode]:
        """Attaches transcripts, truncating only the last episode at its cutoff.

        The returned episodes keep a timestamp only when their transcript was
        actually cut, so the summary prompt never mentions an unused cutoff.
        """
        episodes = []
        last = len(transcribed) - 1
        for index, item in enumerate(transcribed):
            transcript = item.transcript
            episode = item.episode
            cutoff = None
            if index == last and episode.timestamp and episode.duration:
                warning = validate_cutoff_timestamp(episode.timestamp, episode.duration)
                if warning:
                    logger.warning("%s: %s", episode.title, warning)
                if episode.timestamp < episode.duration:
                    transcript = truncate_transcript(transcript, episode.timestamp, episode.duration)
                    cutoff = episode.timestamp
                    logger.info(
                        "Truncated %s at %ss: %d -> %d words",
                        episode.title,
                        episode.timestamp,
                        count_words(item.transcript),
                        count_words(transcript),
                    )
            episodes.append(replace(episode, transcript=transcript, timestamp=cutoff))
        return episodes

    def _log_timings(self, timings: List[Tuple[str, float]], total_seconds: float):
        lines = ["Pipeline timing summary:"]
        for step, seconds in timings:
            lines.append(f"  {step:<45} {seconds:>8.1f}s")
        lines.append(f"  {'TOTAL':<45} {total_seconds:>8.1f}s")
        logger.info("\n".join(lines))
