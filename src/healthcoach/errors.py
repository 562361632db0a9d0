"""Exceptions raised by collaborator handles (data store, text generation).

Analytics components catch these and degrade to empty / None results;
they never reach the request handlers.
"""


class StoreUnavailableError(RuntimeError):
    """Raised when a data-store query fails or exceeds its timeout."""


class TextGenerationError(RuntimeError):
    """Raised when the text-generation API call fails."""
