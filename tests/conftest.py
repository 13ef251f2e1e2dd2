"""Shared test helpers.

AUDIO_DIR must point somewhere disposable before podsummary.main is imported,
since the app creates its storage directory at import time.
"""

import os
import tempfile

os.environ.setdefault("AUDIO_DIR", tempfile.mkdtemp(prefix="podsummary-audio-"))
os.environ.pop("JOB_DB_PATH", None)
os.environ.pop("BUDGET_FILE", None)
