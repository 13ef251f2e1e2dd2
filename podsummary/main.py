import asyncio
import json
import os
from dataclasses import asdict

from fastapi import FastAPI, BackgroundTasks, HTTPException, Request
from fastapi.responses import StreamingResponse
from fastapi.staticfiles import StaticFiles
import httpx

from .api.schemas import (
    BudgetResponse,
    EpisodeMetadataResponse,
    JobCreatedResponse,
    JobResponse,
    MetadataRequest,
    SummaryRequestIn,
)
from .exceptions import BudgetExceededError, ConfigurationError
from .models.summary import ProcessingProgress
from .processors.cost_estimator import estimate_cost
from .processors.job_runner import JobRunner
from .processors.metadata_lookup import lookup_episode_metadata
from .services import build_budget_tracker, build_job_store, build_pipeline, build_runner
from .utils.config import load_config
from .utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Podcast Summary API",
    description="API for turning podcast episodes into short spoken summaries",
    version="1.0.0"
)

# Initialize services
config = load_config()
os.makedirs(config.audio_dir, exist_ok=True)
app.state.config = config
app.state.store = build_job_store(config)
app.state.budget = build_budget_tracker(config)
app.state.pipeline = None
app.mount("/audio", StaticFiles(directory=config.audio_dir), name="audio")


def get_runner(request: Request) -> JobRunner:
    state = request.app.state
    if state.pipeline is None:
        state.pipeline = build_pipeline(state.config)
    return build_runner(state.config, state.store, state.pipeline, state.budget)


def validate_request(request: Request, summary_request: SummaryRequestIn) -> JobRunner:
    """Rejects a request before any job exists; returns the runner that will process it"""
    if not summary_request.episodes:
        raise HTTPException(status_code=400, detail="At least one episode is required")

    try:
        runner = get_runner(request)
    except ConfigurationError as e:
        logger.error("Rejecting request: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    episodes = [e.to_episode() for e in summary_request.episodes]
    estimate = estimate_cost(
        episodes,
        [False] * len(episodes),
        pricing=request.app.state.config.pricing,
        cost_per_minute=getattr(runner.pipeline.transcriber, "cost_per_minute", None),
    )
    if runner.budget is not None:
        try:
            runner.budget.enforce(estimate.total)
        except BudgetExceededError as e:
            logger.warning("Rejecting request: %s", e)
            raise HTTPException(status_code=400, detail=str(e))
    return runner


@app.post("/summaries/", response_model=JobCreatedResponse, status_code=202)
async def create_summary(summary_request: SummaryRequestIn, request: Request, background_tasks: BackgroundTasks):
    runner = validate_request(request, summary_request)
    job_id = await runner.submit()

    # The pipeline keeps running after the response; clients poll /jobs/{id}
    background_tasks.add_task(runner.execute, job_id, summary_request.to_request())

    return JobCreatedResponse(job_id=job_id)


@app.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, request: Request):
    job = await request.app.state.store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.from_job(job)


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


@app.post("/summaries/stream")
async def stream_summary(summary_request: SummaryRequestIn, request: Request):
    """Legacy path: runs the pipeline inside the request and streams events"""
    runner = validate_request(request, summary_request)
    pipeline_request = summary_request.to_request()

    async def events():
        queue: asyncio.Queue = asyncio.Queue()

        async def on_progress(progress: ProcessingProgress):
            await queue.put({"type": "progress", "progress": asdict(progress)})

        async def run():
            try:
                result = await runner.pipeline.run(pipeline_request, runner.credentials, on_progress)
            except Exception as e:
                logger.error("Streaming pipeline failed: %s", e, exc_info=True)
                await queue.put({"type": "error", "error": str(e)})
                return
            if runner.budget is not None:
                runner.budget.record(result.cost_breakdown.total)
            await queue.put({"type": "complete", "result": asdict(result)})

        task = asyncio.create_task(run())
        while True:
            event = await queue.get()
            yield _sse(event)
            if event["type"] != "progress":
                break
        await task

    return StreamingResponse(events(), media_type="text/event-stream")


@app.post("/metadata/", response_model=EpisodeMetadataResponse)
async def get_metadata(metadata_request: MetadataRequest, request: Request):
    credentials = request.app.state.config.credentials
    try:
        metadata = await lookup_episode_metadata(str(metadata_request.episode_url), credentials.listennotes_api_key)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except httpx.HTTPError as e:
        raise HTTPException(status_code=502, detail=f"Metadata lookup failed: {e}")
    return EpisodeMetadataResponse.from_metadata(metadata)


@app.get("/budget/", response_model=BudgetResponse)
async def get_budget(request: Request):
    budget = request.app.state.budget
    return BudgetResponse.from_info(budget.info(), budget.should_warn())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.environ.get("HOST", "127.0.0.1"), port=int(os.environ.get("PORT", "8000")))
