"""Exception hierarchy shared by the ingestion and retrieval layers."""
from __future__ import annotations

from typing import Sequence


class TocIndexError(RuntimeError):
    """Base class for all errors raised by :mod:`tocindex`."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class PageRangeNotFoundError(TocIndexError):
    """Raised when none of the supplied pages fall inside a declared TOC range.

    This aborts ingestion of the whole material: it points at a page extraction
    or TOC analysis defect upstream.
    """

    def __init__(
        self,
        title: str,
        page_start: int,
        page_end: int,
        available_pages: Sequence[int] = (),
    ) -> None:
        super().__init__(f"TOC pages {page_start}-{page_end} not found for section {title!r}")
        self.title = title
        self.page_start = page_start
        self.page_end = page_end
        self.available_pages = tuple(available_pages)


class MaterialNotFoundError(TocIndexError):
    """Raised when the material being ingested has no record."""


class TocAnalysisNotFoundError(TocIndexError):
    """Raised when a material has no TOC analysis to ingest from."""


class RepositoryError(TocIndexError):
    """Raised when the persistence layer rejects an operation."""


class SectionPersistenceError(TocIndexError):
    """Raised when a single section (or one of its parts) could not be saved."""

    def __init__(self, section_id: str, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(f"{section_id}: {message}", cause=cause)
        self.section_id = section_id


__all__ = [
    "MaterialNotFoundError",
    "PageRangeNotFoundError",
    "RepositoryError",
    "SectionPersistenceError",
    "TocAnalysisNotFoundError",
    "TocIndexError",
]
