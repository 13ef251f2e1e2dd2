from typing import Awaitable, Callable, Optional, Sequence, Tuple

from ..models.episode import Episode, TranscriptResult
from ..utils.logger import get_logger

logger = get_logger(__name__)

TranscriptStrategy = Callable[[Episode], Awaitable[Optional[str]]]


async def episode_transcript_strategy(episode: Episode) -> Optional[str]:
    """Uses a transcript that was supplied together with the episode"""
    if episode.transcript and episode.transcript.strip():
        return episode.transcript
    return None


class TranscriptFinder:
    """Tries named lookup strategies in order and returns the first transcript found"""

    def __init__(self, strategies: Sequence[Tuple[str, TranscriptStrategy]]):
        self.strategies = list(strategies)

    async def find(self, episode: Episode) -> Optional[TranscriptResult]:
        for source, strategy in self.strategies:
            try:
                text = await strategy(episode)
            except Exception as e:
                logger.warning("Transcript lookup via %s failed for %s: %s", source, episode.title, e)
                continue
            if text:
                logger.info("Found %s transcript for %s", source, episode.title)
                return TranscriptResult(text=text, source=source)
        return None


def supplied_transcript_finder() -> TranscriptFinder:
    return TranscriptFinder([("supplied", episode_transcript_strategy)])
