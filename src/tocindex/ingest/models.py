"""Data models used by the section ingestion pipeline.

Records consumed from upstream jobs (pages, TOC analyses, materials) are
pydantic models so malformed JSON is rejected at the boundary. Everything the
pipeline produces is a plain slotted dataclass.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .titles import generate_clean_title

SECTION_ID_RE = re.compile(r"^section_.+_\d+(?:_embedpart\d+)?$")


def make_section_id(doc_id: str, toc_index: int) -> str:
    return f"section_{doc_id}_{toc_index}"


def make_part_id(section_id: str, part_number: int) -> str:
    return f"{section_id}_embedpart{part_number}"


def make_chunk_id(section_id: str, paragraph_idx: int) -> str:
    return f"chunk_{section_id}_{paragraph_idx}"


def is_valid_section_id(section_id: str) -> bool:
    return bool(SECTION_ID_RE.match(section_id or ""))


class SemanticType(str, Enum):
    """Structural role of a TOC entry."""

    CHAPTER = "chapter"
    SECTION = "section"
    SUBSECTION = "subsection"
    PARAGRAPH = "paragraph"


class _ExternalRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PageText(_ExternalRecord):
    """Text of one page as produced by the page extraction job."""

    page_number: int = Field(ge=1)
    text: str = ""


class TocSection(_ExternalRecord):
    """A single entry of a material's table of contents."""

    title: str = Field(min_length=1)
    clean_title: str = ""
    level: int = Field(default=1, ge=1, le=10)
    page_start: int = Field(ge=1)
    page_end: int = Field(ge=1)
    parent_section_id: Optional[str] = None
    semantic_type: SemanticType = SemanticType.SECTION
    processed: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "TocSection":
        if self.page_end < self.page_start:
            raise ValueError(
                f"page_end {self.page_end} precedes page_start {self.page_start} for {self.title!r}"
            )
        if not self.clean_title:
            self.clean_title = generate_clean_title(self.title) or self.title.strip()
        return self


class TocAnalysis(_ExternalRecord):
    """Table of contents detected for a material."""

    doc_id: str = Field(min_length=1)
    sections: List[TocSection] = Field(default_factory=list)
    total_sections: int = 0
    processed_sections: int = 0
    status: str = "pending"

    @model_validator(mode="after")
    def _fill_counts(self) -> "TocAnalysis":
        if not self.total_sections:
            self.total_sections = len(self.sections)
        return self


class Material(_ExternalRecord):
    """Metadata of an uploaded study material."""

    material_id: str = Field(min_length=1)
    title: str = ""
    subject_id: str = ""
    faculty_id: str = ""
    department_id: str = ""
    year: int = Field(default=1, ge=1)
    status: str = "ready"


@dataclass(slots=True)
class ProcessedSection:
    """Text of a TOC section after page-range extraction and boundary refinement.

    When a section is too long to embed in one piece, ``follow_up_parts`` holds
    the remaining parts; the head keeps part one.
    """

    section_id: str
    doc_id: str
    toc_index: int
    title: str
    clean_title: str
    path: str
    level: int
    page_start: int
    page_end: int
    char_start: int
    char_end: int
    content: str
    parent_section_id: Optional[str] = None
    semantic_type: str = SemanticType.SECTION.value
    follow_up_parts: Tuple["ProcessedSection", ...] = field(default_factory=tuple)

    @property
    def total_parts(self) -> int:
        return 1 + len(self.follow_up_parts)

    def iter_parts(self) -> Iterator["ProcessedSection"]:
        """Yield the head part followed by its follow-up parts."""

        yield replace(self, follow_up_parts=())
        yield from self.follow_up_parts


@dataclass(slots=True)
class Chunk:
    """Paragraph-aligned slice of a section part."""

    chunk_id: str
    section_id: str
    title: str
    path: str
    page: int
    paragraph_idx: int
    char_start: int
    char_end: int
    content: str


__all__ = [
    "Chunk",
    "Material",
    "PageText",
    "ProcessedSection",
    "SECTION_ID_RE",
    "SemanticType",
    "TocAnalysis",
    "TocSection",
    "is_valid_section_id",
    "make_chunk_id",
    "make_part_id",
    "make_section_id",
]
