"""Read persisted section content back by page range."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..repository import SectionRepository

LOGGER = logging.getLogger(__name__)

TRUNCATION_MARKER = "[...]"
TRUNCATION_RESERVE = 100


@dataclass(frozen=True, slots=True)
class SectionSpan:
    title: str
    page_start: int
    page_end: int


@dataclass(slots=True)
class PageRangeContent:
    content: str
    sections: List[SectionSpan] = field(default_factory=list)
    total_length: int = 0
    truncated: bool = False


class SectionReader:
    """Assemble markdown-ish context from the sections overlapping a page range."""

    def __init__(self, repository: "SectionRepository") -> None:
        self.repository = repository

    def extract_content_by_page_range(
        self, doc_id: str, page_start: int, page_end: int, max_chars: int = 4000
    ) -> PageRangeContent:
        """Concatenate sections overlapping ``[page_start, page_end]`` in page order.

        Each section is rendered as ``## <title>`` followed by its content.
        Once ``max_chars`` of section content is reached the last section is
        cut short and marked with ``[...]``.
        """

        overlapping = [
            record
            for record in self.repository.list_sections(doc_id)
            if record.page_start <= page_end and record.page_end >= page_start
        ]
        overlapping.sort(key=lambda record: (record.page_start, record.toc_index, record.part_number))

        blocks: List[str] = []
        spans: List[SectionSpan] = []
        total = 0
        truncated = False
        for record in overlapping:
            if total >= max_chars:
                truncated = True
                break
            remaining = max_chars - total
            body = record.content or ""
            if len(body) > remaining:
                body = body[: max(remaining - TRUNCATION_RESERVE, 0)] + TRUNCATION_MARKER
                total = max_chars
                truncated = True
            else:
                total += len(body)
            blocks.append(f"## {record.title}\n{body}")
            spans.append(SectionSpan(record.title, record.page_start, record.page_end))
            if truncated:
                break

        LOGGER.debug(
            "Read %s sections (%s chars) of %s for pages %s-%s",
            len(spans),
            total,
            doc_id,
            page_start,
            page_end,
        )
        return PageRangeContent(
            content="\n\n".join(blocks).strip(),
            sections=spans,
            total_length=total,
            truncated=truncated,
        )


__all__ = ["PageRangeContent", "SectionReader", "SectionSpan"]
