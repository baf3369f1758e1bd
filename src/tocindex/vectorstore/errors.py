"""Common exceptions for vector store integrations."""
from __future__ import annotations

from ..errors import TocIndexError


class VectorStoreUnavailableError(TocIndexError):
    """Raised when the vector store backend cannot be initialised or written to."""


__all__ = ["VectorStoreUnavailableError"]
