"""Persisted section and chunk records."""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from ..ingest.models import Chunk, Material, ProcessedSection


@dataclass(slots=True)
class SectionRecord:
    """Durable form of one section part, keyed by ``(doc_id, section_id)``.

    Parent-material attributes are copied onto every record so subject-wide
    queries never need to join against materials.
    """

    doc_id: str
    section_id: str
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
    semantic_type: str
    parent_section_id: Optional[str] = None
    subject_id: str = ""
    faculty_id: str = ""
    department_id: str = ""
    year: int = 1
    total_parts: int = 1
    part_number: int = 1
    is_main_part: bool = True
    vector_id: Optional[str] = None

    @classmethod
    def from_section(
        cls,
        part: ProcessedSection,
        material: Material,
        *,
        part_number: int = 1,
        total_parts: int = 1,
    ) -> "SectionRecord":
        return cls(
            doc_id=part.doc_id,
            section_id=part.section_id,
            toc_index=part.toc_index,
            title=part.title,
            clean_title=part.clean_title,
            path=part.path,
            level=part.level,
            page_start=part.page_start,
            page_end=part.page_end,
            char_start=part.char_start,
            char_end=part.char_end,
            content=part.content,
            semantic_type=part.semantic_type,
            parent_section_id=part.parent_section_id,
            subject_id=material.subject_id,
            faculty_id=material.faculty_id,
            department_id=material.department_id,
            year=material.year,
            total_parts=total_parts,
            part_number=part_number,
            is_main_part=part_number == 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SectionRecord":
        names = {field.name for field in fields(cls)}
        return cls(**{key: value for key, value in payload.items() if key in names})


@dataclass(slots=True)
class ChunkRecord:
    """Durable form of one chunk, keyed by ``chunk_id``."""

    chunk_id: str
    doc_id: str
    section_id: str
    title: str
    path: str
    page: int
    paragraph_idx: int
    char_start: int
    char_end: int
    content: str
    subject_id: str = ""
    faculty_id: str = ""
    department_id: str = ""
    year: int = 1
    vector_id: Optional[str] = None

    @classmethod
    def from_chunk(cls, chunk: Chunk, doc_id: str, material: Material | None = None) -> "ChunkRecord":
        return cls(
            chunk_id=chunk.chunk_id,
            doc_id=doc_id,
            section_id=chunk.section_id,
            title=chunk.title,
            path=chunk.path,
            page=chunk.page,
            paragraph_idx=chunk.paragraph_idx,
            char_start=chunk.char_start,
            char_end=chunk.char_end,
            content=chunk.content,
            subject_id=material.subject_id if material else "",
            faculty_id=material.faculty_id if material else "",
            department_id=material.department_id if material else "",
            year=material.year if material else 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ChunkRecord":
        names = {field.name for field in fields(cls)}
        return cls(**{key: value for key, value in payload.items() if key in names})


__all__ = ["ChunkRecord", "SectionRecord"]
