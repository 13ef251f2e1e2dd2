import os
from dataclasses import dataclass, field
from typing import List, Optional

WORDS_PER_MINUTE = 150

FIREWORKS_COST_PER_MINUTE = 0.0012
WHISPER_COST_PER_MINUTE = 0.006
SUMMARIZATION_COST_ESTIMATE = 0.03
TTS_COST_PER_CHAR = 0.000015

PER_REQUEST_LIMIT = 5.00
MONTHLY_LIMIT = 20.00
WARNING_THRESHOLD = 15.00

JOB_TTL_SECONDS = 24 * 60 * 60


@dataclass
class Credentials:
    openai_api_key: Optional[str] = None
    fireworks_api_key: Optional[str] = None
    listennotes_api_key: Optional[str] = None


@dataclass
class Pricing:
    transcription_per_minute: Optional[float] = None
    summarization: float = SUMMARIZATION_COST_ESTIMATE
    tts_per_char: float = TTS_COST_PER_CHAR


@dataclass
class Config:
    credentials: Credentials = field(default_factory=Credentials)
    pricing: Pricing = field(default_factory=Pricing)
    audio_dir: str = "audio"
    public_base_url: str = "/audio"
    job_db_path: Optional[str] = None
    budget_file: Optional[str] = None
    summaries_file: str = "summaries.md"
    summary_model: str = "gpt-4o"
    words_per_minute: int = WORDS_PER_MINUTE
    per_request_limit: float = PER_REQUEST_LIMIT
    monthly_limit: float = MONTHLY_LIMIT
    warning_threshold: float = WARNING_THRESHOLD

    def missing_credentials(self) -> List[str]:
        missing = []
        if not self.credentials.openai_api_key:
            missing.append("OPENAI_API_KEY")
        return missing


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return float(value)


def load_config() -> Config:
    credentials = Credentials(
        openai_api_key=os.environ.get("OPENAI_API_KEY"),
        fireworks_api_key=os.environ.get("FIREWORKS_API_KEY"),
        listennotes_api_key=os.environ.get("LISTENNOTES_API_KEY"),
    )
    pricing = Pricing(
        transcription_per_minute=_float_env("TRANSCRIPTION_COST_PER_MINUTE", None),
        summarization=_float_env("SUMMARIZATION_COST", SUMMARIZATION_COST_ESTIMATE),
        tts_per_char=_float_env("TTS_COST_PER_CHAR", TTS_COST_PER_CHAR),
    )

    return Config(
        credentials=credentials,
        pricing=pricing,
        audio_dir=os.environ.get("AUDIO_DIR", "audio"),
        public_base_url=os.environ.get("PUBLIC_BASE_URL", "/audio").rstrip("/"),
        job_db_path=os.environ.get("JOB_DB_PATH") or None,
        budget_file=os.environ.get("BUDGET_FILE") or None,
        summaries_file=os.environ.get("SUMMARIES_FILE", "summaries.md"),
        summary_model=os.environ.get("SUMMARY_MODEL", "gpt-4o"),
        words_per_minute=int(os.environ.get("WORDS_PER_MINUTE", WORDS_PER_MINUTE)),
        per_request_limit=_float_env("PER_REQUEST_LIMIT", PER_REQUEST_LIMIT),
        monthly_limit=_float_env("MONTHLY_LIMIT", MONTHLY_LIMIT),
        warning_threshold=_float_env("WARNING_THRESHOLD", WARNING_THRESHOLD),
    )
