"""High level ingestion pipeline entry point."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..config import SectioningConfig
from ..errors import MaterialNotFoundError, RepositoryError, TocAnalysisNotFoundError
from ..logging_config import get_ingest_audit_logger
from ..telemetry import emit_exception, emit_ingest_event, emit_section_event, traced_duration
from .boundaries import BoundaryRefiner
from .models import Material, PageText, ProcessedSection, TocAnalysis, TocSection
from .pages import DocumentLayout, TocSectionExtractor
from .persistence import SectionChunkPersister
from .splitting import PartSplitter

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..repository import SectionRepository
    from ..vectorstore import SectionVectorStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestStatistics:
    sections_total: int = 0
    skipped_processed: int = 0
    skipped_short: int = 0
    refined: int = 0
    split: int = 0
    persisted: int = 0
    failed: int = 0
    chunks: int = 0
    overlap_chars: int = 0
    duration_seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class CoveredRange:
    section_id: str
    char_start: int
    char_end: int


@dataclass(frozen=True, slots=True)
class IngestionState:
    """Accumulator threaded through the fold over TOC sections."""

    covered: Tuple[CoveredRange, ...] = ()
    processed_count: int = 0
    sections: Tuple[ProcessedSection, ...] = ()
    statistics: IngestStatistics = field(default_factory=IngestStatistics)

    def overlap_with(self, char_start: int, char_end: int) -> int:
        """Characters of ``[char_start, char_end)`` already owned by earlier sections."""

        return sum(
            max(0, min(char_end, covered.char_end) - max(char_start, covered.char_start))
            for covered in self.covered
        )

    def count(self, **deltas: int) -> "IngestionState":
        stats = self.statistics
        updated = {name: getattr(stats, name) + delta for name, delta in deltas.items()}
        return replace(self, statistics=replace(stats, **updated))

    def advance(self, head: ProcessedSection, processed_delta: int) -> "IngestionState":
        return replace(
            self,
            covered=self.covered + (CoveredRange(head.section_id, head.char_start, _chain_end(head)),),
            processed_count=self.processed_count + processed_delta,
            sections=self.sections + (head,),
        )


@dataclass(slots=True)
class IngestResult:
    """Structured result returned from :meth:`SectionIngestionPipeline.run`."""

    doc_id: str
    sections: List[ProcessedSection]
    processed_sections: int
    total_sections: int
    statistics: IngestStatistics


def _chain_end(head: ProcessedSection) -> int:
    return head.follow_up_parts[-1].char_end if head.follow_up_parts else head.char_end


class SectionIngestionPipeline:
    """Turn a material's TOC analysis and page texts into persisted sections and chunks.

    TOC entries are handled strictly in order, one at a time; each step sees
    the state produced by the previous one.
    """

    def __init__(
        self,
        repository: "SectionRepository",
        vector_store: Optional["SectionVectorStore"] = None,
        *,
        config: SectioningConfig | None = None,
        refiner: BoundaryRefiner | None = None,
        splitter: PartSplitter | None = None,
        persister: SectionChunkPersister | None = None,
    ) -> None:
        self.repository = repository
        self.config = config or SectioningConfig()
        self.refiner = refiner or BoundaryRefiner(self.config)
        self.splitter = splitter or PartSplitter(self.config)
        self.persister = persister or SectionChunkPersister(
            repository, vector_store, splitter=self.splitter, config=self.config
        )
        self._audit_logger = get_ingest_audit_logger()

    def run(self, doc_id: str, pages: Sequence[PageText]) -> IngestResult:
        """Process every unprocessed TOC section of ``doc_id``.

        Raises :class:`~tocindex.errors.PageRangeNotFoundError` when a TOC
        range has no supplied pages; sections handled before the failure stay
        persisted and marked.
        """

        started = time.perf_counter()
        analysis = self.repository.get_toc_analysis(doc_id)
        if analysis is None:
            raise TocAnalysisNotFoundError(f"No TOC analysis for material {doc_id!r}")
        material = self.repository.get_material(doc_id)
        if material is None:
            raise MaterialNotFoundError(f"Material {doc_id!r} does not exist")

        layout = DocumentLayout(pages, self.config.page_separator)
        emit_ingest_event(
            "ingest.sections.start",
            doc_id=doc_id,
            sections=len(analysis.sections),
            pages=len(layout.pages),
        )
        try:
            with traced_duration(
                "ingest.fold", logger=LOGGER, doc_id=doc_id, sections=len(analysis.sections)
            ):
                state = self._fold(doc_id, analysis, material, layout)
        except Exception as error:
            emit_exception(module=__name__, error=error, doc_id=doc_id)
            raise

        duration = time.perf_counter() - started
        stats = replace(
            state.statistics, sections_total=len(analysis.sections), duration_seconds=duration
        )
        self._update_status(doc_id, state.processed_count, len(analysis.sections))
        emit_ingest_event(
            "ingest.sections.complete",
            doc_id=doc_id,
            sections=len(state.sections),
            pages=len(layout.pages),
            persisted=stats.persisted,
            failed=stats.failed,
            chunks=stats.chunks,
            duration_ms=duration * 1000.0,
        )
        self._audit_logger.info(
            {
                "event": "ingest",
                "doc_id": doc_id,
                "processed_sections": state.processed_count,
                "total_sections": len(analysis.sections),
                "persisted": stats.persisted,
                "failed": stats.failed,
                "chunks": stats.chunks,
            }
        )
        return IngestResult(
            doc_id=doc_id,
            sections=list(state.sections),
            processed_sections=state.processed_count,
            total_sections=len(analysis.sections),
            statistics=stats,
        )

    def _fold(
        self,
        doc_id: str,
        analysis: TocAnalysis,
        material: Material,
        layout: DocumentLayout,
    ) -> IngestionState:
        extractor = TocSectionExtractor(layout)
        state = IngestionState(processed_count=analysis.processed_sections)
        toc = analysis.sections
        for index, toc_section in enumerate(toc):
            following = toc[index + 1] if index + 1 < len(toc) else None
            state = self._step(state, doc_id, index, toc_section, following, material, extractor)
        return state

    def _step(
        self,
        state: IngestionState,
        doc_id: str,
        index: int,
        toc_section: TocSection,
        following: TocSection | None,
        material: Material,
        extractor: TocSectionExtractor,
    ) -> IngestionState:
        if toc_section.processed:
            LOGGER.debug("Skipping already processed TOC section %s (%r)", index, toc_section.title)
            return state.count(skipped_processed=1)

        section, page_range = extractor.extract(doc_id, index, toc_section)
        if len(section.content) < self.config.min_section_chars:
            emit_section_event(
                "ingest.section.skipped",
                doc_id=doc_id,
                title=toc_section.title,
                page_start=toc_section.page_start,
                page_end=toc_section.page_end,
                chars=len(section.content),
                level="warning",
            )
            return state.count(skipped_short=1)

        refinement = self.refiner.refine(section, page_range, following)
        strategy = None
        if refinement.section is not None:
            section = refinement.section
            strategy = refinement.start_strategy.value if refinement.start_strategy else None
            state = state.count(refined=1)
        else:
            LOGGER.debug(
                "Using page-range content for %r (%s)", toc_section.title, refinement.reason
            )

        overlap = state.overlap_with(section.char_start, section.char_end)
        if overlap:
            LOGGER.debug("Section %s overlaps earlier sections by %s chars", section.section_id, overlap)
            state = state.count(overlap_chars=overlap)

        head = self.splitter.split_for_embedding(section)
        if head.follow_up_parts:
            state = state.count(split=1)

        outcome = self.persister.persist(head, material, extractor.layout)
        state = state.count(
            persisted=len(outcome.saved), failed=len(outcome.failed), chunks=outcome.chunks
        )
        processed_delta = 0
        if outcome.ok:
            processed_delta = int(self._mark_processed(doc_id, index))

        emit_section_event(
            "ingest.section.complete" if outcome.ok else "ingest.section.failed",
            doc_id=doc_id,
            title=toc_section.title,
            page_start=head.page_start,
            page_end=head.page_end,
            chars=len(section.content),
            strategy=strategy,
            parts=head.total_parts,
            level="info" if outcome.ok else "warning",
        )
        return state.advance(head, processed_delta)

    def _mark_processed(self, doc_id: str, index: int) -> bool:
        try:
            return self.repository.mark_toc_section_processed(doc_id, index)
        except RepositoryError as error:
            LOGGER.error("Failed to mark TOC section %s of %s processed: %s", index, doc_id, error)
            return False

    def _update_status(self, doc_id: str, processed: int, total: int) -> None:
        status = "completed" if processed >= total else "partial"
        try:
            self.repository.set_toc_status(doc_id, status)
        except RepositoryError as error:
            LOGGER.error("Failed to update TOC status of %s: %s", doc_id, error)


__all__ = [
    "CoveredRange",
    "IngestResult",
    "IngestStatistics",
    "IngestionState",
    "SectionIngestionPipeline",
]
