class PipelineError(Exception):
    """Base class for errors that fail a summary job"""


class ConfigurationError(PipelineError):
    """Required provider credentials are not configured"""


class BudgetExceededError(PipelineError):
    pass


class TranscriptionError(PipelineError):
    pass


class SummarizationError(PipelineError):
    pass


class SynthesisError(PipelineError):
    pass


class StorageError(PipelineError):
    pass
