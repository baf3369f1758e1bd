"""Persistence layer for materials, TOC analyses, sections and chunks."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List, Optional, Protocol

from ..ingest.models import Material, TocAnalysis
from .memory import InMemorySectionRepository, JsonFileSectionRepository
from .records import ChunkRecord, SectionRecord


class SectionRepository(Protocol):
    """Operations the ingestion pipeline and retrieval layer need from storage."""

    def save_material(self, material: Material) -> None:
        ...

    def get_material(self, material_id: str) -> Optional[Material]:
        ...

    def list_materials(
        self, subject_id: str | None = None, statuses: Iterable[str] | None = None
    ) -> List[Material]:
        ...

    def save_toc_analysis(self, analysis: TocAnalysis) -> None:
        ...

    def get_toc_analysis(self, doc_id: str) -> Optional[TocAnalysis]:
        ...

    def mark_toc_section_processed(self, doc_id: str, index: int) -> bool:
        ...

    def set_toc_status(self, doc_id: str, status: str) -> None:
        ...

    def upsert_section(self, record: SectionRecord) -> None:
        ...

    def get_section(self, doc_id: str, section_id: str) -> Optional[SectionRecord]:
        ...

    def list_sections(self, doc_id: str | None = None) -> List[SectionRecord]:
        ...

    def set_section_vector_id(self, doc_id: str, section_id: str, vector_id: str) -> None:
        ...

    def prune_section_parts(self, doc_id: str, toc_index: int, keep: Iterable[str]) -> List[str]:
        ...

    def replace_section_chunks(
        self, doc_id: str, section_id: str, chunks: Iterable[ChunkRecord]
    ) -> None:
        ...

    def upsert_chunk(self, record: ChunkRecord) -> None:
        ...

    def list_chunks(self, doc_id: str | None = None, section_id: str | None = None) -> List[ChunkRecord]:
        ...

    def set_chunk_vector_id(self, chunk_id: str, vector_id: str) -> None:
        ...


@lru_cache()
def get_repository() -> SectionRepository:
    """Return the repository selected by ``TOCINDEX_REPOSITORY``.

    ``memory`` (the default) keeps everything in process; any other value is
    the path of a JSON file the repository is mirrored to.
    """

    target = os.getenv("TOCINDEX_REPOSITORY", "memory").strip()
    if not target or target.lower() == "memory":
        return InMemorySectionRepository()
    return JsonFileSectionRepository(target)


def reset_repository_cache() -> None:
    """Clear the cached repository (primarily for testing)."""

    get_repository.cache_clear()


__all__ = [
    "ChunkRecord",
    "InMemorySectionRepository",
    "JsonFileSectionRepository",
    "SectionRecord",
    "SectionRepository",
    "get_repository",
    "reset_repository_cache",
]
