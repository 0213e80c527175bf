"""
Domain exceptions.

Routes translate these to HTTP status codes; queue workers let them
propagate so RQ can apply the retry policy.
"""


class FileParseError(ValueError):
    """Uploaded document could not be read or has an unsupported type."""


class AIProviderError(RuntimeError):
    """A single AI provider call failed."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class AllProvidersFailedError(RuntimeError):
    """Every candidate AI provider failed for an operation."""

    def __init__(self, operation: str, errors: dict = None):
        self.operation = operation
        self.errors = errors or {}
        super().__init__(f"All AI providers failed for {operation}")


class NotFoundError(LookupError):
    """Requested resource does not exist or belongs to another user (404)."""


class InvalidRequestError(ValueError):
    """Request is well-formed but not allowed in the current state (400)."""
