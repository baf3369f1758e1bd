"""Combine TOC title matches with chunk hits into ranked candidate sections."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING

from ..config import ScoringConfig
from ..ingest.models import Material, is_valid_section_id
from ..ingest.titles import generate_clean_title
from ..repository.records import ChunkRecord
from ..telemetry import emit_retriever_event, traced_duration
from .lexical import LexicalChunkSearcher, query_words

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..repository import SectionRepository

LOGGER = logging.getLogger(__name__)

UNTITLED_SECTION = "Untitled Section"
MIN_TITLE_WORD_CHARS = 4


class ChunkSearcher(Protocol):
    def search_similar_chunks(self, query: str, chunks: Sequence[ChunkRecord]) -> List[ChunkRecord]:
        ...


@dataclass(slots=True)
class RetrievalCandidate:
    """A section proposed as context for one query; never persisted."""

    material_id: str
    material_name: str
    section_title: str
    content: str
    relevance_score: float
    section_id: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "materialId": self.material_id,
            "materialName": self.material_name,
            "sectionTitle": self.section_title,
            "content": self.content,
            "relevanceScore": self.relevance_score,
            "sectionId": self.section_id,
        }


def _word_forms_match(first: str, second: str) -> bool:
    if first == second:
        return True
    if min(len(first), len(second)) < MIN_TITLE_WORD_CHARS:
        return False
    return first.startswith(second) or second.startswith(first)


def title_matches_query(title: str, message: str) -> bool:
    """Whether the cleaned ``title`` is mentioned by ``message``.

    Either the whole title occurs in the message or one of its significant
    words shares a stem-like prefix with a query word, which tolerates
    inflected forms ("hardvera" against "Hardver").
    """

    clean = generate_clean_title(title).lower()
    lowered = message.lower()
    if len(clean) >= 2 and clean in lowered:
        return True
    title_words = [word for word in query_words(clean) if len(word) >= MIN_TITLE_WORD_CHARS]
    message_words = query_words(lowered)
    return any(_word_forms_match(word, other) for word in title_words for other in message_words)


class RetrievalCombiner:
    """Rank persisted sections of a set of materials for a user message."""

    def __init__(
        self,
        repository: "SectionRepository",
        chunk_searcher: Optional[ChunkSearcher] = None,
        config: ScoringConfig | None = None,
    ) -> None:
        self.repository = repository
        self.chunk_searcher = chunk_searcher or LexicalChunkSearcher()
        self.config = config or ScoringConfig()

    def find_relevant_sections(
        self, user_message: str, materials: Sequence[Material], top_k: int | None = None
    ) -> List[RetrievalCandidate]:
        started = time.perf_counter()
        limit = self.config.top_k if top_k is None else top_k
        candidates: List[RetrievalCandidate] = []
        for material in materials:
            with traced_duration("retrieval.material", logger=LOGGER, material_id=material.material_id):
                toc_ids = self.find_toc_relevant_sections(material.material_id, user_message)
                chunks = self.search_chunks(material.material_id, user_message, toc_ids)
                candidates.extend(self.combine(material, toc_ids, chunks))

        candidates.sort(key=lambda candidate: candidate.relevance_score, reverse=True)
        ranked = candidates[:limit]
        emit_retriever_event(
            "retrieval.sections",
            query=user_message,
            top_k=limit,
            results=[
                {"section_id": candidate.section_id, "score": round(candidate.relevance_score, 3)}
                for candidate in ranked
            ],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return ranked

    def find_toc_relevant_sections(self, material_id: str, user_message: str) -> List[str]:
        """Persisted section ids whose TOC entry title matches ``user_message``."""

        analysis = self.repository.get_toc_analysis(material_id)
        if analysis is None or not user_message.strip():
            return []
        matched = {
            index
            for index, toc_section in enumerate(analysis.sections)
            if title_matches_query(toc_section.clean_title or toc_section.title, user_message)
        }
        if not matched:
            return []
        return [
            record.section_id
            for record in self.repository.list_sections(material_id)
            if record.toc_index in matched
        ]

    def search_chunks(
        self, material_id: str, user_message: str, toc_section_ids: Sequence[str]
    ) -> List[ChunkRecord]:
        """Chunk hits for the material, restricted to TOC-matched sections when any exist."""

        chunks = self.repository.list_chunks(material_id)
        if toc_section_ids:
            wanted = set(toc_section_ids)
            chunks = [chunk for chunk in chunks if chunk.section_id in wanted]
        chunks = chunks[: self.config.candidate_chunk_limit]
        if not chunks:
            return []
        return self.chunk_searcher.search_similar_chunks(user_message, chunks)

    def combine(
        self,
        material: Material,
        toc_section_ids: Sequence[str],
        ranked_chunks: Sequence[ChunkRecord],
    ) -> List[RetrievalCandidate]:
        cfg = self.config
        ceiling = min(cfg.max_score, 1.0)
        by_section: Dict[str, RetrievalCandidate] = {}

        for chunk in ranked_chunks:
            section_id = chunk.section_id
            if not is_valid_section_id(section_id):
                LOGGER.debug("Skipping chunk %s with malformed section id %r", chunk.chunk_id, section_id)
                continue
            record = self.repository.get_section(material.material_id, section_id)
            if record is None:
                continue
            score = cfg.vector_chunk_score if chunk.vector_id else cfg.plain_chunk_score
            existing = by_section.get(section_id)
            if existing is not None:
                existing.content += "\n\n" + chunk.content
                existing.relevance_score = max(existing.relevance_score, score)
            else:
                by_section[section_id] = RetrievalCandidate(
                    material_id=material.material_id,
                    material_name=material.title,
                    section_title=record.title or UNTITLED_SECTION,
                    content=chunk.content,
                    relevance_score=score,
                    section_id=section_id,
                )

        for section_id in toc_section_ids:
            if not is_valid_section_id(section_id):
                LOGGER.debug("Skipping malformed TOC section id %r", section_id)
                continue
            existing = by_section.get(section_id)
            if existing is not None:
                existing.relevance_score = existing.relevance_score + cfg.toc_bonus
                continue
            record = self.repository.get_section(material.material_id, section_id)
            if record is None:
                continue
            local = self.repository.list_chunks(material.material_id, section_id)[: cfg.toc_only_chunk_limit]
            content = "\n\n".join(chunk.content for chunk in local)
            by_section[section_id] = RetrievalCandidate(
                material_id=material.material_id,
                material_name=material.title,
                section_title=record.title or UNTITLED_SECTION,
                content=content or record.title or "",
                relevance_score=cfg.toc_only_score,
                section_id=section_id,
            )

        for candidate in by_section.values():
            candidate.relevance_score = min(ceiling, max(0.0, candidate.relevance_score))
        return list(by_section.values())


__all__ = ["RetrievalCandidate", "RetrievalCombiner", "title_matches_query"]
