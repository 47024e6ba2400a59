"""Exception taxonomy for the documentation-to-action pipeline.

Errors raised while processing one candidate URL are converted into an
``error`` result at that URL's boundary; they never abort sibling URLs.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class FetchError(PipelineError):
    """A page could not be fetched (network error, timeout or HTTP status)."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Error fetching {url}: {message}")
        self.url = url


class ModelError(PipelineError):
    """The completion service failed (credential, quota or transport)."""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend} completion failed: {message}")
        self.backend = backend


class ParseError(PipelineError):
    """Model output could not be parsed, even after repair, or was a template."""


class ValidationError(PipelineError):
    """An extracted action is missing required fields."""


class ClassificationNegative(PipelineError):
    """A page is not API documentation. A semantic skip, not a failure."""

    def __init__(self, reason: str = "Not API documentation"):
        super().__init__(reason)
        self.reason = reason


class InvalidRootUrlError(PipelineError, ValueError):
    """The root URL is not a parseable absolute http(s) URL."""
