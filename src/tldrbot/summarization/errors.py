"""Exceptions raised by the summarization pipeline."""


class SummarizationError(RuntimeError):
    """Raised when the model returns an empty or unusable response.

    Nothing is cached when this is raised.
    """
