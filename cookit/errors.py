"""
Error types for the Cookit server.

Every error carries the HTTP status the API layer should answer with and a
user-facing message. Internal detail stays in str(exc) and the logs.
"""


class CookitError(Exception):
    """Base class for all expected failures."""

    status_code = 500
    public_message = "An error occurred while processing the request."

    def __init__(self, message: str = None, public_message: str = None):
        super().__init__(message or self.public_message)
        if public_message:
            self.public_message = public_message


class ValidationError(CookitError):
    """400 - bad or missing input."""

    status_code = 400
    public_message = "Invalid request."


class EmptyProfileError(ValidationError):
    """The user has no registered ingredients."""

    public_message = "No ingredients registered."


class NotFoundError(CookitError):
    """404 - missing user, recipe or document."""

    status_code = 404
    public_message = "The requested resource was not found."


class EmptyCorpusError(NotFoundError):
    """The recipe corpus returned nothing."""

    public_message = "No matching recipes found."


class ExternalServiceError(CookitError):
    """502 - detector or recommender unreachable, or returned an unexpected shape."""

    status_code = 502
    public_message = "An external service is currently unavailable."


class RateLimitedError(ExternalServiceError):
    """429 from the recommender. Handled by the curator's fallback."""

    status_code = 429
    public_message = "Too many requests. Please try again later."


class DetectionTimeoutError(ExternalServiceError):
    """The ingredient detector exceeded its time budget."""

    status_code = 504
    public_message = "Image processing timed out."


class HistoryConflictError(CookitError):
    """Concurrent recommendation requests kept overwriting the same history."""

    status_code = 409
    public_message = "Another recommendation is in progress. Please try again."
