"""Lexical search across every ready material of a subject."""
from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..config import SearchConfig
from ..errors import MaterialNotFoundError
from ..repository.records import ChunkRecord, SectionRecord
from ..telemetry import emit_retriever_event
from .lexical import query_words

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..repository import SectionRepository

LOGGER = logging.getLogger(__name__)

MAX_SCORE = 20.0
PREVIEW_LEFT_CONTEXT = 50
AI_CONTEXT_SECTION_CHARS = 1000
NO_READY_MATERIALS = "No materials are ready for search in this subject."
UNKNOWN_MATERIAL = "Unknown Material"


def text_relevance_score(query: str, title: str, content: str, abstract: str = "") -> float:
    """Phrase and word containment score, damped by content length, in ``[0, 20]``."""

    phrase = query.lower()
    title_lower = (title or "").lower()
    content_lower = (content or "").lower()
    abstract_lower = (abstract or "").lower()

    score = 0.0
    if phrase:
        if phrase in title_lower:
            score += 10
        if phrase in content_lower:
            score += 8
        if phrase in abstract_lower:
            score += 6

    for word in query_words(phrase):
        if word in title_lower:
            score += 3
        if word in content_lower:
            score += 1
        if word in abstract_lower:
            score += 2

    if content:
        score = score / math.log(len(content) / 100 + 1)
    return min(score, MAX_SCORE)


def content_preview(content: str, query: str, max_length: int = 200) -> str:
    """Excerpt of ``content`` starting shortly before the first query word.

    Without any matching word the excerpt starts at the beginning. Truncated
    ends are marked with ``...``.
    """

    if not content:
        return ""
    first: Optional[int] = None
    for word in query_words(query):
        match = re.search(re.escape(word), content, re.IGNORECASE)
        if match is not None and (first is None or match.start() < first):
            first = match.start()

    start = max(0, first - PREVIEW_LEFT_CONTEXT) if first is not None else 0
    end = min(len(content), start + max_length)
    preview = content[start:end]
    if start > 0:
        preview = "..." + preview
    if end < len(content):
        preview = preview + "..."
    return preview.strip()


@dataclass(slots=True)
class SearchOptions:
    preferred_levels: Tuple[int, ...] = ()
    semantic_types: Tuple[str, ...] = ()
    page_range: Optional[Tuple[int, int]] = None


@dataclass(slots=True)
class SearchHit:
    kind: str
    id: str
    material_id: str
    material_title: str
    title: str
    content: str
    relevance_score: float
    page_start: int
    path: str
    content_preview: str
    page_end: Optional[int] = None
    level: Optional[int] = None
    semantic_type: Optional[str] = None
    section_id: str = ""
    chunk_id: Optional[str] = None
    paragraph_idx: Optional[int] = None
    part_number: Optional[int] = None
    total_parts: Optional[int] = None


@dataclass(slots=True)
class SubjectSearchResult:
    query: str
    total_results: int
    results: List[SearchHit] = field(default_factory=list)
    materials_searched: List[str] = field(default_factory=list)
    search_strategy: str = "text_only"
    suggestions: List[str] = field(default_factory=list)


def search_suggestions(query: str, results: Sequence[SearchHit]) -> List[str]:
    if not results:
        return [
            "Try using different keywords or synonyms",
            "Check if the material has been fully processed",
        ]
    if len(results) >= 3:
        return []
    suggestions = ["Try broader search terms to find more results"]
    phrase = query.lower()
    related = [hit.title for hit in results if phrase not in hit.title.lower()][:2]
    if related:
        suggestions.append(f"Related topics you might search: {', '.join(related)}")
    return suggestions


class SubjectSearchRanker:
    """Rank persisted sections and chunks of a subject's ready materials for a query."""

    def __init__(self, repository: "SectionRepository", config: SearchConfig | None = None) -> None:
        self.repository = repository
        self.config = config or SearchConfig()

    def search_in_subject(
        self,
        subject_id: str,
        query: str,
        options: SearchOptions | None = None,
        max_results: int | None = None,
    ) -> SubjectSearchResult:
        materials = self.repository.list_materials(subject_id, self.config.ready_statuses)
        if not materials:
            return SubjectSearchResult(query=query, total_results=0, suggestions=[NO_READY_MATERIALS])
        titles = {material.material_id: material.title for material in materials}
        return self._search(titles, query, options or SearchOptions(), max_results)

    def search_in_material(
        self,
        material_id: str,
        query: str,
        options: SearchOptions | None = None,
        max_results: int | None = None,
    ) -> SubjectSearchResult:
        material = self.repository.get_material(material_id)
        if material is None:
            raise MaterialNotFoundError(f"Material not found: {material_id}")
        return self._search({material.material_id: material.title}, query, options or SearchOptions(), max_results)

    def _search(
        self,
        titles: Dict[str, str],
        query: str,
        options: SearchOptions,
        max_results: int | None,
    ) -> SubjectSearchResult:
        started = time.perf_counter()
        limit = self.config.max_results if max_results is None else max_results
        section_limit = math.ceil(limit * self.config.section_share)
        chunk_limit = math.ceil(limit * (1 - self.config.section_share))

        hits = self._section_hits(titles, query, options, section_limit)
        hits += self._chunk_hits(titles, query, options, chunk_limit)
        hits.sort(key=lambda hit: hit.relevance_score, reverse=True)
        results = [hit for hit in hits if hit.relevance_score >= self.config.min_relevance][:limit]

        emit_retriever_event(
            "retrieval.subject_search",
            query=query,
            top_k=limit,
            results=[{"id": hit.id, "kind": hit.kind, "score": round(hit.relevance_score, 3)} for hit in results],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return SubjectSearchResult(
            query=query,
            total_results=len(results),
            results=results,
            materials_searched=list(titles),
            suggestions=search_suggestions(query, results),
        )

    def _section_hits(
        self, titles: Dict[str, str], query: str, options: SearchOptions, limit: int
    ) -> List[SearchHit]:
        words = query_words(query)
        candidates: List[SectionRecord] = []
        for material_id in titles:
            for record in self.repository.list_sections(material_id):
                if options.preferred_levels and record.level not in options.preferred_levels:
                    continue
                if options.semantic_types and record.semantic_type not in options.semantic_types:
                    continue
                if options.page_range and not (
                    record.page_start >= options.page_range[0] and record.page_end <= options.page_range[1]
                ):
                    continue
                haystack = f"{record.title}\n{record.content}".lower()
                if words and not any(word in haystack for word in words):
                    continue
                candidates.append(record)
        candidates.sort(key=lambda record: (record.level, record.page_start))

        hits: List[SearchHit] = []
        for record in candidates[:limit]:
            score = text_relevance_score(query, record.title, record.content)
            if score <= 0:
                continue
            hits.append(
                SearchHit(
                    kind="section",
                    id=f"{record.doc_id}:{record.section_id}",
                    material_id=record.doc_id,
                    material_title=titles.get(record.doc_id) or UNKNOWN_MATERIAL,
                    title=record.title,
                    content=record.content,
                    relevance_score=score,
                    page_start=record.page_start,
                    page_end=record.page_end,
                    path=record.path,
                    level=record.level,
                    semantic_type=record.semantic_type,
                    content_preview=content_preview(record.content, query, self.config.preview_chars),
                    section_id=record.section_id,
                    part_number=record.part_number,
                    total_parts=record.total_parts,
                )
            )
        return hits

    def _chunk_hits(
        self, titles: Dict[str, str], query: str, options: SearchOptions, limit: int
    ) -> List[SearchHit]:
        words = query_words(query)
        candidates: List[ChunkRecord] = []
        for material_id in titles:
            for record in self.repository.list_chunks(material_id):
                if options.page_range and not options.page_range[0] <= record.page <= options.page_range[1]:
                    continue
                haystack = f"{record.title}\n{record.content}".lower()
                if not all(word in haystack for word in words):
                    continue
                candidates.append(record)
        candidates.sort(key=lambda record: (record.page, record.paragraph_idx))

        hits: List[SearchHit] = []
        for record in candidates[:limit]:
            score = text_relevance_score(query, record.title, record.content)
            if score <= 0:
                continue
            hits.append(
                SearchHit(
                    kind="chunk",
                    id=record.chunk_id,
                    material_id=record.doc_id,
                    material_title=titles.get(record.doc_id) or UNKNOWN_MATERIAL,
                    title=record.title or f"Paragraph {record.paragraph_idx + 1}",
                    content=record.content,
                    relevance_score=score * self.config.chunk_weight,
                    page_start=record.page,
                    path=record.path,
                    content_preview=content_preview(record.content, query, self.config.chunk_preview_chars),
                    section_id=record.section_id,
                    chunk_id=record.chunk_id,
                    paragraph_idx=record.paragraph_idx,
                )
            )
        return hits


def build_ai_context(result: SubjectSearchResult) -> Dict[str, object]:
    """Shape a search result into the context block handed to the chat model."""

    sections = []
    for hit in result.results:
        content = hit.content
        if hit.kind == "section" and len(content) > AI_CONTEXT_SECTION_CHARS:
            content = content[:AI_CONTEXT_SECTION_CHARS] + "..."
        pages = f"{hit.page_start}-{hit.page_end}" if hit.page_end else f"{hit.page_start}"
        sections.append(
            {
                "title": hit.title,
                "content": content,
                "source": f"{hit.material_title}, {hit.path}, Page {pages}",
                "relevance": round(hit.relevance_score, 1),
            }
        )
    summary = (
        f"Found {result.total_results} relevant sections across "
        f"{len(result.materials_searched)} materials. "
        f"Search strategy: {result.search_strategy}. "
        f"Top results cover: {', '.join(section['title'] for section in sections[:3])}."
    )
    return {
        "query": result.query,
        "context_summary": summary,
        "relevant_sections": sections,
        "total_sources": len(result.materials_searched),
    }


__all__ = [
    "SearchHit",
    "SearchOptions",
    "SubjectSearchRanker",
    "SubjectSearchResult",
    "build_ai_context",
    "content_preview",
    "search_suggestions",
    "text_relevance_score",
]
