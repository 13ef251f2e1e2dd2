import math
from typing import Optional

from ..utils.config import WORDS_PER_MINUTE
from ..utils.text import split_sentences

# Trimming back to a sentence end is only done inside this tail of the cut text
SENTENCE_BOUNDARY_WINDOW = 0.10


def truncate_transcript(transcript: str, cutoff_seconds: float, episode_duration_seconds: float) -> str:
    """Cuts a transcript at the point proportional to cutoff_seconds.

    Word position is interpolated linearly from time, so the cut is only an
    approximation of what was actually said before the cutoff.
    """
    if cutoff_seconds >= episode_duration_seconds:
        return transcript

    if cutoff_seconds <= 0:
        sentences = split_sentences(transcript)[:3]
        return " ".join(s.strip() for s in sentences)

    fraction = cutoff_seconds / episode_duration_seconds
    words = transcript.split()
    cutoff_index = math.floor(len(words) * fraction)
    truncated = " ".join(words[:cutoff_index])

    last_sentence_end = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))
    if last_sentence_end > len(truncated) * (1 - SENTENCE_BOUNDARY_WINDOW):
        truncated = truncated[: last_sentence_end + 1]

    return truncated.strip()


def estimate_word_count_at_timestamp(
    episode_duration_seconds: float,
    timestamp_seconds: float,
    words_per_minute: int = WORDS_PER_MINUTE,
) -> int:
    if episode_duration_seconds <= 0:
        return 0
    total_words = episode_duration_seconds / 60 * words_per_minute
    return math.floor(total_words * timestamp_seconds / episode_duration_seconds)


def validate_cutoff_timestamp(cutoff_seconds: float, episode_duration_seconds: float) -> Optional[str]:
    """Returns a message describing a questionable cutoff, or None if it looks fine"""
    if cutoff_seconds < 0:
        return "Cutoff time cannot be negative"
    if cutoff_seconds > episode_duration_seconds:
        return "Cutoff time cannot exceed episode duration"
    if cutoff_seconds < episode_duration_seconds * 0.05:
        return "Cutoff time is very early in the episode. Are you sure?"
    return None
