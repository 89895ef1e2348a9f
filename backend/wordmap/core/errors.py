"""
Error taxonomy for fetching, parsing and persisting source content.
"""

from typing import Optional


class WordmapError(Exception):
    """Base class for all errors raised by this package."""


class FetchError(WordmapError):
    """A fetch attempt failed. ``transient`` errors are eligible for retry."""

    def __init__(self, message: str, transient: bool = True, status_code: Optional[int] = None):
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Network failure, timeout, non-2xx status or empty body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, transient=True, status_code=status_code)


class StructuralParseError(FetchError):
    """Payload does not look like the expected feed dialect or JSON schema."""

    def __init__(self, message: str):
        super().__init__(message, transient=True)


class AuthError(FetchError):
    """The endpoint rejected our credentials (401/403)."""

    def __init__(self, message: str, status_code: Optional[int] = 401):
        super().__init__(message, transient=False, status_code=status_code)


class UnknownSourceError(WordmapError):
    """Requested source id is not registered."""

    def __init__(self, source_id: str, available: Optional[list[str]] = None):
        available = available or []
        super().__init__(
            f"API source '{source_id}' not found. "
            f"Available sources: {', '.join(available) or 'none'}"
        )
        self.source_id = source_id
        self.available = available


class PersistenceChunkError(WordmapError):
    """One chunk of a batched write or read failed."""

    def __init__(
        self,
        operation: str,
        cause: Optional[BaseException] = None,
        chunk_index: Optional[int] = None,
    ):
        where = f" for chunk {chunk_index}" if chunk_index is not None else ""
        super().__init__(f"{operation} failed{where}: {cause}")
        self.operation = operation
        self.chunk_index = chunk_index
        self.cause = cause


class ConfigurationError(WordmapError):
    """Invalid source configuration detected at startup."""
