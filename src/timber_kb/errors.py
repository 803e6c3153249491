"""Exception types raised across the engine boundary."""

from __future__ import annotations

PROVIDER_ERROR_PREFIX = "Provider error"


class KnowledgeEngineError(Exception):
    """Base class for engine errors."""


class UnknownUserError(KnowledgeEngineError):
    """Raised when a request names a user the directory does not know."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class PermissionDeniedError(KnowledgeEngineError):
    """Raised when a user may not manage or read a document."""


class DocumentNotFoundError(KnowledgeEngineError):
    """Raised when a document id does not resolve."""

    def __init__(self, doc_id: str) -> None:
        super().__init__(f"Document not found: {doc_id}")
        self.doc_id = doc_id


class ProviderError(KnowledgeEngineError):
    """Failure of an external embedding, search or completion provider.

    Never leaves the engine: the retrieval fallback turns it into a labelled
    answer string (see `PROVIDER_ERROR_PREFIX`).
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message

    def as_answer(self) -> str:
        return f"{PROVIDER_ERROR_PREFIX} ({self.provider}): {self.message}"


class MalformedQueryError(KnowledgeEngineError):
    """A parsed or merged query violates its own invariants."""
