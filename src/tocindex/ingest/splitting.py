"""Size enforcement: embedding-safe parts and paragraph-aligned chunks."""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterator, List, Optional, Tuple

from ..config import SectioningConfig
from .models import Chunk, ProcessedSection, make_chunk_id, make_part_id
from .pages import DocumentLayout

LOGGER = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s)")


class PartSplitter:
    """Split sections into embedding-safe parts and parts into retrieval chunks."""

    def __init__(self, config: SectioningConfig | None = None) -> None:
        self.config = config or SectioningConfig()

    # -- embedding-safe parts -------------------------------------------------

    def split_for_embedding(self, section: ProcessedSection) -> ProcessedSection:
        """Return ``section`` unchanged or as a head part owning its follow-up parts."""

        limit = max(self.config.embedding_max_chars, 1)
        content = section.content
        if len(content) <= limit:
            return section

        pieces: List[Tuple[int, int]] = []
        offset = 0
        while offset < len(content):
            if len(pieces) >= self.config.max_embedding_parts:
                LOGGER.warning(
                    "Section %s exceeds %s parts; dropping trailing %s chars",
                    section.section_id,
                    self.config.max_embedding_parts,
                    len(content) - offset,
                )
                break
            end = min(offset + limit, len(content))
            if end < len(content):
                end = offset + self._cut_point(content[offset:end])
            pieces.append((offset, end))
            offset = end

        total = len(pieces)
        parts = [
            replace(
                section,
                section_id=make_part_id(section.section_id, number),
                title=f"{section.title} (Part {number}/{total})",
                path=f"{section.path}.{number}",
                char_start=section.char_start + start,
                char_end=section.char_start + end,
                content=content[start:end],
                follow_up_parts=(),
            )
            for number, (start, end) in enumerate(pieces, start=1)
        ]
        LOGGER.info("Split section %s into %s embedding parts", section.section_id, total)
        head = parts[0]
        head.follow_up_parts = tuple(parts[1:])
        return head

    def _cut_point(self, part: str) -> int:
        window_start = len(part) - int(self.config.embedding_max_chars * self.config.split_search_ratio)
        window_start = max(window_start, 0)
        window = part[window_start:]
        for marker in ("\n\n", ".", "\n"):
            found = window.rfind(marker)
            if found == -1:
                continue
            cut = window_start + found + len(marker)
            if 0 < cut <= len(part):
                return cut
        return len(part)

    # -- chunks ---------------------------------------------------------------

    def chunk_section(
        self, section: ProcessedSection, layout: Optional[DocumentLayout] = None
    ) -> List[Chunk]:
        """Group paragraphs of ``section`` into chunks of at most ``chunk_max_chars``."""

        content = section.content
        limit = max(self.config.chunk_max_chars, 1)
        chunks: List[Chunk] = []

        def flush(start: int, end: int) -> None:
            raw = content[start:end]
            text = raw.strip()
            if not text:
                return
            local_start = start + (len(raw) - len(raw.lstrip()))
            char_start = section.char_start + local_start
            chunks.append(
                Chunk(
                    chunk_id=make_chunk_id(section.section_id, len(chunks)),
                    section_id=section.section_id,
                    title=section.title,
                    path=section.path,
                    page=self._page_for(section, char_start, layout),
                    paragraph_idx=len(chunks),
                    char_start=char_start,
                    char_end=char_start + len(text),
                    content=text,
                )
            )

        buffer_start: Optional[int] = None
        buffer_end = 0
        for start, end in _paragraph_spans(content):
            if end - start > limit:
                if buffer_start is not None:
                    flush(buffer_start, buffer_end)
                    buffer_start = None
                for window_start, window_end in self._split_oversized(content, start, end, limit):
                    flush(window_start, window_end)
                continue
            if buffer_start is not None and end - buffer_start > limit:
                flush(buffer_start, buffer_end)
                buffer_start = None
            if buffer_start is None:
                buffer_start = start
            buffer_end = end
        if buffer_start is not None:
            flush(buffer_start, buffer_end)
        return chunks

    def chunk_parts(
        self, head: ProcessedSection, layout: Optional[DocumentLayout] = None
    ) -> List[Chunk]:
        chunks: List[Chunk] = []
        for part in head.iter_parts():
            chunks.extend(self.chunk_section(part, layout))
        return chunks

    @staticmethod
    def _split_oversized(content: str, start: int, end: int, limit: int) -> Iterator[Tuple[int, int]]:
        position = start
        while position < end:
            window_end = min(position + limit, end)
            if window_end < end:
                window = content[position:window_end]
                breaks = [match.end() for match in _SENTENCE_END_RE.finditer(window)]
                cut = breaks[-1] if breaks else -1
                if cut < limit // 4:
                    cut = window.rfind(" ")
                if cut >= max(limit // 4, 1):
                    window_end = position + cut
            yield position, window_end
            position = window_end

    @staticmethod
    def _page_for(section: ProcessedSection, char_start: int, layout: Optional[DocumentLayout]) -> int:
        if layout is None:
            return section.page_start
        page = layout.page_for_offset(char_start)
        return min(max(page, section.page_start), section.page_end)


def _paragraph_spans(content: str) -> Iterator[Tuple[int, int]]:
    position = 0
    for paragraph in content.split(PARAGRAPH_SEPARATOR):
        yield position, position + len(paragraph)
        position += len(paragraph) + len(PARAGRAPH_SEPARATOR)


__all__ = ["PARAGRAPH_SEPARATOR", "PartSplitter"]
