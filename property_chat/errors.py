"""Error taxonomy shared by the chat service and the ingestion pipeline.

Every error carries an HTTP-style ``status_code`` and a ``public_message``
that is safe to hand to a browser.  The detailed message passed to the
constructor is for logs only.
"""

from __future__ import annotations

from typing import Optional


class PropertyBotError(Exception):
    """Base class for all errors raised by this project."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.public_message)


class ConfigurationError(PropertyBotError):
    """A required credential or setting is missing."""

    public_message = "OpenAI API key is not configured"


class ValidationError(PropertyBotError, ValueError):
    """The caller sent a malformed request."""

    status_code = 400
    public_message = "Invalid request"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message)
        if message:
            self.public_message = message


class ProviderError(PropertyBotError):
    """The LLM provider failed for a reason we do not map specifically."""


class ProviderAuthError(ProviderError):
    status_code = 401
    public_message = "Invalid API key"


class ProviderRateLimitError(ProviderError):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."


class ProviderRequestError(ProviderError):
    status_code = 400
    public_message = "Invalid request to the language model API"


class ListingsError(PropertyBotError):
    """The listings API answered with a non-success status or was unreachable."""

    public_message = "Failed to fetch properties"


class FunctionDispatchError(PropertyBotError):
    """A model-requested function could not be executed."""


class CaptionError(PropertyBotError):
    """A single image could not be described."""


class EmbeddingError(PropertyBotError):
    """The embedding model did not return a usable vector."""


class UpsertError(PropertyBotError):
    """The vector store rejected a batch."""


class StreamError(PropertyBotError):
    """A token stream ended before its completion marker."""

    public_message = "Streaming failed"
