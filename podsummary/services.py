from typing import Optional

from .exceptions import ConfigurationError
from .processors.audio_storage import LocalAudioStorage
from .processors.cost_estimator import BudgetTracker, JsonFileBudgetBackend, MemoryBudgetBackend
from .processors.job_runner import JobRunner
from .processors.job_store import JobStore, MemoryJobBackend, SQLiteJobBackend
from .processors.pipeline import SummaryPipeline
from .processors.speech_synthesizer import SpeechSynthesizer
from .processors.summary_generator import SummaryGenerator
from .processors.transcriber import make_transcriber
from .utils.config import Config


def build_pipeline(config: Config) -> SummaryPipeline:
    missing = config.missing_credentials()
    if missing:
        raise ConfigurationError(f"Server API keys not configured: {', '.join(missing)}")

    return SummaryPipeline(
        transcriber=make_transcriber(config.credentials),
        summarizer=SummaryGenerator(model=config.summary_model, words_per_minute=config.words_per_minute),
        synthesizer=SpeechSynthesizer(words_per_minute=config.words_per_minute),
        storage=LocalAudioStorage(config.audio_dir, config.public_base_url),
        pricing=config.pricing,
        words_per_minute=config.words_per_minute,
    )


def build_job_store(config: Config) -> JobStore:
    if config.job_db_path:
        return JobStore(SQLiteJobBackend(config.job_db_path))
    return JobStore(MemoryJobBackend())


def build_budget_tracker(config: Config) -> BudgetTracker:
    backend = JsonFileBudgetBackend(config.budget_file) if config.budget_file else MemoryBudgetBackend()
    return BudgetTracker(
        backend,
        per_request_limit=config.per_request_limit,
        monthly_limit=config.monthly_limit,
        warning_threshold=config.warning_threshold,
    )


def build_runner(
    config: Config,
    store: JobStore,
    pipeline: Optional[SummaryPipeline] = None,
    budget: Optional[BudgetTracker] = None,
) -> JobRunner:
    """Fails fast with ConfigurationError before any job exists"""
    missing = config.missing_credentials()
    if missing:
        raise ConfigurationError(f"Server API keys not configured: {', '.join(missing)}")
    return JobRunner(store, pipeline or build_pipeline(config), config.credentials, budget)
