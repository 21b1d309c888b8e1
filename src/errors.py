"""Exception hierarchy shared by the pipeline stages.

Stage-specific subclasses live next to the code that raises them
(renderer, extractor, translator, notion_service, pipeline).
"""


class PipelineError(Exception):
    """Base exception for every failure raised by a pipeline stage."""

    pass


class PersistenceError(PipelineError):
    """Raised when the document store rejects a record after all retries."""

    pass
