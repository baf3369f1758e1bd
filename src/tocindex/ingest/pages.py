"""Page-range extraction for TOC sections."""
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ..config import PAGE_SEPARATOR
from ..errors import PageRangeNotFoundError
from .models import PageText, ProcessedSection, TocSection, make_section_id

LOGGER = logging.getLogger(__name__)


def generate_section_path(level: int, index: int) -> str:
    """Build the dotted hierarchy path of the TOC entry at ``index``."""

    if level <= 1:
        return str(index + 1)
    if level == 2:
        return f"{index // 10 + 1}.{index % 10 + 1}"
    return f"{index // 100 + 1}.{(index // 10) % 10 + 1}.{index % 10 + 1}"


class DocumentLayout:
    """Absolute character offsets of the supplied pages.

    The document is the concatenation of all supplied page texts, in page
    order, joined by ``separator``. Pages missing from the input contribute
    nothing.
    """

    def __init__(self, pages: Sequence[PageText], separator: str = PAGE_SEPARATOR) -> None:
        unique: Dict[int, PageText] = {}
        for page in pages:
            unique.setdefault(page.page_number, page)
        self.pages: Tuple[PageText, ...] = tuple(unique[number] for number in sorted(unique))
        self.separator = separator
        self._numbers: List[int] = [page.page_number for page in self.pages]
        self._offsets: List[int] = []
        offset = 0
        for page in self.pages:
            self._offsets.append(offset)
            offset += len(page.text) + len(separator)

    @property
    def page_numbers(self) -> List[int]:
        return list(self._numbers)

    def char_offset(self, page_number: int) -> int:
        """Sum of ``len(text) + len(separator)`` over supplied pages before ``page_number``."""

        position = bisect.bisect_left(self._numbers, page_number)
        if position < len(self._offsets):
            return self._offsets[position]
        if not self.pages:
            return 0
        last = self.pages[-1]
        return self._offsets[-1] + len(last.text) + len(self.separator)

    def page_for_offset(self, offset: int) -> int:
        """Return the page number holding the absolute character ``offset``."""

        if not self.pages:
            return 1
        position = bisect.bisect_right(self._offsets, max(offset, 0)) - 1
        return self._numbers[max(position, 0)]

    def pages_in_range(self, page_start: int, page_end: int) -> List[PageText]:
        low = bisect.bisect_left(self._numbers, page_start)
        high = bisect.bisect_right(self._numbers, page_end)
        return list(self.pages[low:high])


@dataclass(frozen=True, slots=True)
class PageRangeText:
    """Raw and trimmed text of the pages covered by one TOC entry."""

    raw_text: str
    range_char_start: int
    content: str
    char_start: int
    page_numbers: Tuple[int, ...]

    @property
    def char_end(self) -> int:
        return self.char_start + len(self.content)


class TocSectionExtractor:
    """Cut the text of TOC sections out of a document's pages."""

    def __init__(self, layout: DocumentLayout) -> None:
        self.layout = layout

    def extract_text(self, toc_section: TocSection) -> PageRangeText:
        pages = self.layout.pages_in_range(toc_section.page_start, toc_section.page_end)
        if not pages:
            raise PageRangeNotFoundError(
                toc_section.title,
                toc_section.page_start,
                toc_section.page_end,
                self.layout.page_numbers,
            )
        raw_text = self.layout.separator.join(page.text for page in pages)
        range_char_start = self.layout.char_offset(toc_section.page_start)
        leading = len(raw_text) - len(raw_text.lstrip())
        return PageRangeText(
            raw_text=raw_text,
            range_char_start=range_char_start,
            content=raw_text.strip(),
            char_start=range_char_start + leading,
            page_numbers=tuple(page.page_number for page in pages),
        )

    def extract(
        self, doc_id: str, index: int, toc_section: TocSection
    ) -> Tuple[ProcessedSection, PageRangeText]:
        """Return the page-range section for the TOC entry at ``index``."""

        text = self.extract_text(toc_section)
        section = ProcessedSection(
            section_id=make_section_id(doc_id, index),
            doc_id=doc_id,
            toc_index=index,
            title=toc_section.title,
            clean_title=toc_section.clean_title,
            path=generate_section_path(toc_section.level, index),
            level=toc_section.level,
            page_start=toc_section.page_start,
            page_end=toc_section.page_end,
            char_start=text.char_start,
            char_end=text.char_end,
            content=text.content,
            parent_section_id=toc_section.parent_section_id,
            semantic_type=toc_section.semantic_type.value,
        )
        LOGGER.debug(
            "Extracted %s chars for %r from pages %s",
            len(section.content),
            toc_section.title,
            list(text.page_numbers),
        )
        return section, text


__all__ = [
    "DocumentLayout",
    "PageRangeText",
    "TocSectionExtractor",
    "generate_section_path",
]
