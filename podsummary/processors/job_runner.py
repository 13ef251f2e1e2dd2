import uuid
from typing import Optional

from ..models.episode import SummaryRequest
from ..models.summary import ProcessingProgress, SummaryResult
from ..utils.config import Credentials
from ..utils.logger import get_logger
from .cost_estimator import BudgetTracker
from .job_store import JobStore
from .pipeline import SummaryPipeline

logger = get_logger(__name__)


class JobRunner:
    """Turns summary requests into jobs whose outcome is only visible through the store"""

    def __init__(
        self,
        store: JobStore,
        pipeline: SummaryPipeline,
        credentials: Credentials,
        budget: Optional[BudgetTracker] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.credentials = credentials
        self.budget = budget

    async def submit(self) -> str:
        job_id = uuid.uuid4().hex
        await self.store.create(job_id)
        logger.info("Created job %s", job_id)
        return job_id

    async def execute(self, job_id: str, request: SummaryRequest) -> Optional[SummaryResult]:
        async def on_progress(progress: ProcessingProgress):
            await self.store.update_progress(job_id, progress)

        try:
            result = await self.pipeline.run(request, self.credentials, on_progress)
        except Exception as e:
            logger.error("Job %s failed: %s", job_id, e, exc_info=True)
            await self.store.fail(job_id, str(e) or e.__class__.__name__)
            return None

        await self.store.complete(job_id, result)
        if self.budget is not None:
            self.budget.record(result.cost_breakdown.total)
        logger.info("Job %s completed, total cost $%.4f", job_id, result.cost_breakdown.total)
        return result
