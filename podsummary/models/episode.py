from dataclasses import dataclass, field
from typing import List, Optional

TARGET_DURATIONS = (1, 5, 10)


@dataclass
class Episode:
    url: str
    title: str
    duration: float
    show_name: Optional[str] = None
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    # Cutoff in seconds; only meaningful on the last episode of a request
    timestamp: Optional[float] = None


@dataclass
class SummaryRequest:
    episodes: List[Episode] = field(default_factory=list)
    target_duration: int = 5

    def __post_init__(self):
        if not self.episodes:
            raise ValueError("At least one episode is required")
        if self.target_duration not in TARGET_DURATIONS:
            raise ValueError(f"target_duration must be one of {TARGET_DURATIONS}")


@dataclass
class EpisodeMetadata:
    title: str
    show_name: str = ""
    duration: float = 3600
    description: str = ""
    thumbnail_url: str = ""
    audio_url: Optional[str] = None
    audio_file_size: Optional[int] = None
    publish_date: Optional[str] = None


@dataclass
class TranscriptResult:
    text: str
    source: str
