import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ProcessingStatus(Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingProgress:
    step: str
    percentage: int
    message: str
    episode_index: Optional[int] = None
    total_episodes: Optional[int] = None


@dataclass
class CostBreakdown:
    transcription: float
    summarization: float
    tts: float
    total: float

    @classmethod
    def from_parts(cls, transcription: float, summarization: float, tts: float) -> "CostBreakdown":
        return cls(
            transcription=transcription,
            summarization=summarization,
            tts=tts,
            total=transcription + summarization + tts,
        )


@dataclass(frozen=True)
class SummaryResult:
    audio_url: str
    summary_text: str
    actual_duration: int
    target_duration: int
    cost_breakdown: CostBreakdown


@dataclass
class Job:
    id: str
    status: ProcessingStatus
    progress: Optional[ProcessingProgress] = None
    result: Optional[SummaryResult] = None
    error: Optional[str] = None
    created_at: float = 0.0

    @classmethod
    def new(cls, job_id: str) -> "Job":
        return cls(id=job_id, status=ProcessingStatus.PROCESSING, created_at=time.time())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        progress = data.get("progress")
        result = data.get("result")
        if result is not None:
            result = SummaryResult(
                audio_url=result["audio_url"],
                summary_text=result["summary_text"],
                actual_duration=result["actual_duration"],
                target_duration=result["target_duration"],
                cost_breakdown=CostBreakdown(**result["cost_breakdown"]),
            )
        return cls(
            id=data["id"],
            status=ProcessingStatus(data["status"]),
            progress=ProcessingProgress(**progress) if progress else None,
            result=result,
            error=data.get("error"),
            created_at=data.get("created_at", 0.0),
        )
