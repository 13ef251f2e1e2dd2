import math
import re
from typing import List

from .config import WORDS_PER_MINUTE

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def count_words(text: str) -> int:
    return len(text.split())


def split_sentences(text: str) -> List[str]:
    """Rough sentence split; text after the last terminator is dropped"""
    return _SENTENCE_RE.findall(text)


def calculate_target_word_count(target_minutes: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    return target_minutes * words_per_minute


def estimate_speaking_duration(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Estimated seconds needed to speak word_count words"""
    return math.ceil(word_count / words_per_minute * 60)


def is_word_count_acceptable(actual: int, target: int, tolerance: float = 0.10) -> bool:
    if target <= 0:
        return actual == 0
    return abs(actual - target) / target <= tolerance


def format_timestamp(seconds: float) -> str:
    """Formats seconds as H:MM:SS, or M:SS under an hour"""
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def parse_duration(value: str) -> int:
    parts = value.split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return 0
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return 0
