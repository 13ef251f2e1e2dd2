from pydantic import BaseModel, ConfigDict, HttpUrl, Field, model_validator
from typing import List, Literal, Optional

from ..models.episode import Episode, EpisodeMetadata, SummaryRequest
from ..models.summary import Job
from ..processors.cost_estimator import BudgetInfo


class EpisodeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    title: str
    duration: float = Field(ge=0)
    show_name: Optional[str] = None
    audio_url: Optional[str] = None
    timestamp: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_timestamp(self):
        # duration 0 (unknown) admits no positive cutoff
        if self.timestamp is not None and self.timestamp > self.duration:
            raise ValueError("timestamp cannot exceed episode duration")
        return self

    def to_episode(self) -> Episode:
        return Episode(
            url=self.url,
            title=self.title,
            duration=self.duration,
            show_name=self.show_name,
            audio_url=self.audio_url,
            timestamp=self.timestamp,
        )


class SummaryRequestIn(BaseModel):
    episodes: List[EpisodeIn] = Field(default_factory=list)
    target_duration: Literal[1, 5, 10] = 5

    def to_request(self) -> SummaryRequest:
        return SummaryRequest(
            episodes=[e.to_episode() for e in self.episodes],
            target_duration=self.target_duration,
        )


class JobCreatedResponse(BaseModel):
    job_id: str


class ProgressResponse(BaseModel):
    step: str
    percentage: int
    message: str
    episode_index: Optional[int] = None
    total_episodes: Optional[int] = None


class CostBreakdownResponse(BaseModel):
    transcription: float
    summarization: float
    tts: float
    total: float


class SummaryResultResponse(BaseModel):
    audio_url: str
    summary_text: str
    actual_duration: int
    target_duration: int
    cost_breakdown: CostBreakdownResponse


class JobResponse(BaseModel):
    id: str
    status: str
    progress: Optional[ProgressResponse] = None
    result: Optional[SummaryResultResponse] = None
    error: Optional[str] = None
    created_at: float

    @classmethod
    def from_job(cls, job: Job):
        return cls.model_validate(job.to_dict())


class MetadataRequest(BaseModel):
    episode_url: HttpUrl


class EpisodeMetadataResponse(BaseModel):
    title: str
    show_name: str
    duration: float
    description: str
    thumbnail_url: str
    audio_url: Optional[str] = None
    audio_file_size: Optional[int] = None
    publish_date: Optional[str] = None

    @classmethod
    def from_metadata(cls, metadata: EpisodeMetadata):
        return cls(
            title=metadata.title,
            show_name=metadata.show_name,
            duration=metadata.duration,
            description=metadata.description,
            thumbnail_url=metadata.thumbnail_url,
            audio_url=metadata.audio_url,
            audio_file_size=metadata.audio_file_size,
            publish_date=metadata.publish_date,
        )


class BudgetResponse(BaseModel):
    monthly_spend: float
    monthly_limit: float
    per_request_limit: float
    last_reset: str
    warning: bool

    @classmethod
    def from_info(cls, info: BudgetInfo, warning: bool):
        return cls(
            monthly_spend=info.monthly_spend,
            monthly_limit=info.monthly_limit,
            per_request_limit=info.per_request_limit,
            last_reset=info.last_reset,
            warning=warning,
        )
