import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Sequence

from ..exceptions import BudgetExceededError
from ..models.episode import Episode
from ..models.summary import CostBreakdown
from ..utils.config import (
    FIREWORKS_COST_PER_MINUTE,
    MONTHLY_LIMIT,
    PER_REQUEST_LIMIT,
    WARNING_THRESHOLD,
    Pricing,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SUMMARY_LENGTH = 5000


def _transcription_rate(pricing: Pricing, cost_per_minute: Optional[float]) -> float:
    if pricing.transcription_per_minute is not None:
        return pricing.transcription_per_minute
    if cost_per_minute is not None:
        return cost_per_minute
    return FIREWORKS_COST_PER_MINUTE


def estimate_cost(
    episodes: Sequence[Episode],
    has_transcripts: Sequence[bool],
    summary_length: int = DEFAULT_SUMMARY_LENGTH,
    pricing: Optional[Pricing] = None,
    cost_per_minute: Optional[float] = None,
) -> CostBreakdown:
    """Projected cost of a request before any work is done"""
    pricing = pricing or Pricing()
    rate = _transcription_rate(pricing, cost_per_minute)

    transcription = 0.0
    for episode, has_transcript in zip(episodes, has_transcripts):
        if not has_transcript:
            transcription += episode.duration / 60 * rate

    return CostBreakdown.from_parts(
        transcription=transcription,
        summarization=pricing.summarization,
        tts=summary_length * pricing.tts_per_char,
    )


def calculate_actual_costs(
    minutes_transcribed: float,
    summary_length: int,
    pricing: Optional[Pricing] = None,
    cost_per_minute: Optional[float] = None,
) -> CostBreakdown:
    pricing = pricing or Pricing()
    rate = _transcription_rate(pricing, cost_per_minute)
    return CostBreakdown.from_parts(
        transcription=minutes_transcribed * rate,
        summarization=pricing.summarization,
        tts=summary_length * pricing.tts_per_char,
    )


@dataclass
class BudgetInfo:
    monthly_spend: float
    monthly_limit: float
    per_request_limit: float
    last_reset: str


class MemoryBudgetBackend:
    def __init__(self):
        self._state: Dict[str, object] = {}

    def load(self) -> Dict[str, object]:
        return dict(self._state)

    def save(self, state: Dict[str, object]):
        self._state = dict(state)


class JsonFileBudgetBackend:
    def __init__(self, path: str):
        self.path = path

    def load(self) -> Dict[str, object]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return {}

    def save(self, state: Dict[str, object]):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(state, f)
        os.replace(tmp_path, self.path)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BudgetTracker:
    """Monthly spend accounting with per-request and monthly ceilings.

    Spend resets to zero the first time it is read in a new calendar month.
    """

    def __init__(
        self,
        backend=None,
        per_request_limit: float = PER_REQUEST_LIMIT,
        monthly_limit: float = MONTHLY_LIMIT,
        warning_threshold: float = WARNING_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend or MemoryBudgetBackend()
        self.per_request_limit = per_request_limit
        self.monthly_limit = monthly_limit
        self.warning_threshold = warning_threshold
        self.clock = clock

    def _current_state(self) -> Dict[str, object]:
        now = self.clock()
        state = self.backend.load()
        last_reset = state.get("last_reset")
        if last_reset is not None:
            last = datetime.fromisoformat(str(last_reset))
            if (last.year, last.month) == (now.year, now.month):
                return state
            logger.info("New budget period, resetting monthly spend of $%.2f", float(state.get("monthly_spend", 0.0)))

        state = {"monthly_spend": 0.0, "last_reset": now.isoformat()}
        self.backend.save(state)
        return state

    def info(self) -> BudgetInfo:
        state = self._current_state()
        return BudgetInfo(
            monthly_spend=float(state["monthly_spend"]),
            monthly_limit=self.monthly_limit,
            per_request_limit=self.per_request_limit,
            last_reset=str(state["last_reset"]),
        )

    def check(self, estimated_cost: float) -> Optional[str]:
        """Returns why estimated_cost would break the budget, or None"""
        spend = self.info().monthly_spend
        if estimated_cost > self.per_request_limit:
            return (
                f"Estimated cost ${estimated_cost:.2f} exceeds per-request limit "
                f"of ${self.per_request_limit:.2f}"
            )
        if spend + estimated_cost > self.monthly_limit:
            return (
                f"Would exceed monthly budget: ${spend:.2f} + ${estimated_cost:.2f} "
                f"> ${self.monthly_limit:.2f}"
            )
        return None

    def enforce(self, estimated_cost: float):
        problem = self.check(estimated_cost)
        if problem:
            raise BudgetExceededError(problem)

    def should_warn(self) -> bool:
        spend = self.info().monthly_spend
        return self.warning_threshold <= spend < self.monthly_limit

    def record(self, actual_cost: float):
        state = self._current_state()
        state["monthly_spend"] = float(state["monthly_spend"]) + actual_cost
        self.backend.save(state)
        logger.info("Recorded $%.4f, monthly spend now $%.2f", actual_cost, state["monthly_spend"])
