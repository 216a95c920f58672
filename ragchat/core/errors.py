"""
Application errors.

Use ServiceUnavailableError when a dependency (vector store, embeddings, LLM)
is misconfigured or unreachable so the API can return 503 with a user-facing message.
The remaining classes are the retrieval/agent taxonomy; see ToolRegistry.dispatch and
AgentOrchestrator for where each one is recovered.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class IngestionError(Exception):
    """Source directory missing or unreadable."""


class EmbeddingError(Exception):
    """Embedding service failed or returned vectors that do not match the input."""


class StoreError(Exception):
    """Vector store persistence or query failure (including dimension mismatch)."""


class ParseError(Exception):
    """Model output does not match the two-shape JSON contract. Keeps the offending text."""

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


class UnknownToolError(Exception):
    """Requested tool is not in the registry."""

    def __init__(self, name: str, valid: list[str]) -> None:
        self.name = name
        self.valid = list(valid)
        super().__init__(f"Unknown function: {name}. Available functions: {', '.join(self.valid)}")


class ToolExecutionError(Exception):
    """A tool failed. Converted into a failed ToolResult by the registry, never propagated."""
