"""
Error taxonomy for the preview pipeline.

Every failure the service reports carries an ``error_type`` (the ``type``
field of error responses) and the HTTP status it maps to. Library errors
(Playwright, Redis) are converted into these at the seam where they occur.
"""


class PreviewError(Exception):
    """Base class for all preview pipeline failures."""

    error_type = "UNKNOWN_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PreviewError):
    """Missing or malformed client input. Never retried."""

    error_type = "VALIDATION_ERROR"
    status_code = 400


class LaunchError(PreviewError):
    """The browser engine did not start within its timeout."""

    # Reported to clients as a generic generation failure
    error_type = "GENERATION_ERROR"


class NavigationError(PreviewError):
    """Every navigation attempt failed."""

    error_type = "NAVIGATION_FAILED"

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class GenerationError(PreviewError):
    """Extraction or screenshot capture failed on a rendered page."""

    error_type = "GENERATION_ERROR"


class CacheUnavailableError(PreviewError):
    """The cache store could not be reached."""

    error_type = "CACHE_UNAVAILABLE"
