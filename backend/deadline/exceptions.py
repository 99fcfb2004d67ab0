"""Errors raised by the enrichment pipeline and the persistence gateway."""


class DeadlineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(DeadlineError):
    """A required credential or setting is missing."""


class EventNotFound(DeadlineError):
    """The requested event (or its details) does not exist."""


class PersistenceError(DeadlineError):
    """The database rejected a read or write."""


class NoArticlesFound(DeadlineError):
    """Search and scraping produced nothing usable for the LLM."""


class LLMResponseError(DeadlineError):
    """The LLM returned output that could not be parsed as JSON."""


class UpdateExtractionFailed(DeadlineError):
    """New articles existed but the LLM produced no valid update records."""
