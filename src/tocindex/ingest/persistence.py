"""Persist processed sections and their chunks, registering both for vector search."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from ..config import SectioningConfig
from ..errors import SectionPersistenceError
from ..repository.records import ChunkRecord, SectionRecord
from ..telemetry import emit_exception
from .models import Material, ProcessedSection
from .pages import DocumentLayout
from .splitting import PartSplitter

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..repository import SectionRepository
    from ..vectorstore import SectionVectorStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PersistOutcome:
    """Per-part result of persisting one TOC section."""

    saved: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    chunks: int = 0

    @property
    def ok(self) -> bool:
        return bool(self.saved) and not self.failed


class SectionChunkPersister:
    """Write every part of a section, then its chunks, upserting by id."""

    def __init__(
        self,
        repository: "SectionRepository",
        vector_store: Optional["SectionVectorStore"] = None,
        *,
        splitter: PartSplitter | None = None,
        config: SectioningConfig | None = None,
    ) -> None:
        self.repository = repository
        self.vector_store = vector_store
        self.config = config or SectioningConfig()
        self.splitter = splitter or PartSplitter(self.config)

    def persist(
        self,
        head: ProcessedSection,
        material: Material,
        layout: DocumentLayout | None = None,
    ) -> PersistOutcome:
        """Persist ``head`` and its follow-up parts.

        A failing part is logged and recorded in the outcome; the remaining
        parts are still attempted.
        """

        outcome = PersistOutcome()
        total = head.total_parts
        part_ids = [part.section_id for part in head.iter_parts()]
        try:
            self.repository.prune_section_parts(head.doc_id, head.toc_index, part_ids)
        except Exception as error:
            LOGGER.exception("Failed to prune stale parts of %s", head.section_id)
            emit_exception(
                module=__name__,
                error=SectionPersistenceError(head.section_id, str(error), cause=error),
                doc_id=head.doc_id,
                suggestion="Section stays unprocessed and is retried on the next run.",
            )
            outcome.failed.extend(part_ids)
            return outcome
        for number, part in enumerate(head.iter_parts(), start=1):
            try:
                outcome.chunks += self._persist_part(part, material, number, total, layout)
            except Exception as error:
                LOGGER.exception("Failed to persist section part %s", part.section_id)
                emit_exception(
                    module=__name__,
                    error=SectionPersistenceError(part.section_id, str(error), cause=error),
                    doc_id=part.doc_id,
                    suggestion="Section stays unprocessed and is retried on the next run.",
                )
                outcome.failed.append(part.section_id)
            else:
                outcome.saved.append(part.section_id)
        return outcome

    def _persist_part(
        self,
        part: ProcessedSection,
        material: Material,
        part_number: int,
        total_parts: int,
        layout: DocumentLayout | None,
    ) -> int:
        record = SectionRecord.from_section(
            part, material, part_number=part_number, total_parts=total_parts
        )
        self.repository.upsert_section(record)
        if self.vector_store is not None:
            vector_id = self.vector_store.add_section(
                part.section_id,
                part.content,
                {
                    "doc_id": part.doc_id,
                    "title": part.title,
                    "path": part.path,
                    "page_start": part.page_start,
                    "page_end": part.page_end,
                    "subject_id": material.subject_id,
                    "part_number": part_number,
                    "total_parts": total_parts,
                },
            )
            self.repository.set_section_vector_id(part.doc_id, part.section_id, vector_id)

        chunks = [
            ChunkRecord.from_chunk(chunk, part.doc_id, material)
            for chunk in self.splitter.chunk_section(part, layout)
        ]
        self.repository.replace_section_chunks(part.doc_id, part.section_id, chunks)
        if self.vector_store is not None and self.config.register_chunks:
            for chunk in chunks:
                vector_id = self.vector_store.add_chunk(
                    chunk.chunk_id,
                    chunk.content,
                    {
                        "doc_id": chunk.doc_id,
                        "section_id": chunk.section_id,
                        "page": chunk.page,
                        "paragraph_idx": chunk.paragraph_idx,
                    },
                )
                self.repository.set_chunk_vector_id(chunk.chunk_id, vector_id)
        LOGGER.debug("Persisted %s with %s chunks", part.section_id, len(chunks))
        return len(chunks)


__all__ = ["PersistOutcome", "SectionChunkPersister"]
