"""Narrow page-range sections down to the text between consecutive TOC titles."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from ..config import SectioningConfig
from .models import ProcessedSection, TocSection
from .pages import PageRangeText
from .titles import MatchStrategy, TitleMatcher, default_matchers, find_title, generate_clean_title

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Refinement:
    """Outcome of one refinement attempt.

    ``section`` is ``None`` when the caller should keep the unrefined
    page-range content; ``reason`` then says why.
    """

    section: Optional[ProcessedSection]
    start_strategy: Optional[MatchStrategy] = None
    end_strategy: Optional[MatchStrategy] = None
    reason: str = ""

    @property
    def refined(self) -> bool:
        return self.section is not None


class BoundaryRefiner:
    """Locate a section's own title, and the next section's title, inside its page range.

    Searching is confined to the page-range text, so a title appearing
    elsewhere in the document can never pull content from another section.
    """

    def __init__(
        self,
        config: SectioningConfig | None = None,
        matchers: Sequence[TitleMatcher] | None = None,
    ) -> None:
        self.config = config or SectioningConfig()
        self.matchers = list(matchers) if matchers is not None else default_matchers(
            self.config.max_title_variations
        )

    def refine(
        self,
        section: ProcessedSection,
        page_range: PageRangeText,
        next_section: TocSection | None = None,
    ) -> Refinement:
        text = page_range.raw_text
        title = section.clean_title or generate_clean_title(section.title)
        start = find_title(text, title, 0, self.matchers)
        if start is None:
            return Refinement(None, reason="title not found")

        end_position = len(text)
        end_strategy: Optional[MatchStrategy] = None
        if next_section is not None:
            next_title = next_section.clean_title or generate_clean_title(next_section.title)
            end = find_title(text, next_title, start.end, self.matchers)
            if end is not None:
                end_position = end.position
                end_strategy = end.strategy

        raw = text[start.position : end_position]
        content = raw.strip()
        if len(content) < self.config.min_section_chars:
            LOGGER.debug(
                "Refined content for %r too short (%s chars); keeping page range",
                section.title,
                len(content),
            )
            return Refinement(
                None,
                start_strategy=start.strategy,
                end_strategy=end_strategy,
                reason="refined content too short",
            )

        char_start = page_range.range_char_start + start.position + (len(raw) - len(raw.lstrip()))
        refined = replace(
            section,
            content=content,
            char_start=char_start,
            char_end=char_start + len(content),
        )
        return Refinement(refined, start_strategy=start.strategy, end_strategy=end_strategy)


__all__ = ["BoundaryRefiner", "Refinement"]
