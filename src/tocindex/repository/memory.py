"""In-memory and JSON-file repositories."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import RepositoryError
from ..ingest.models import Material, TocAnalysis
from .records import ChunkRecord, SectionRecord

LOGGER = logging.getLogger(__name__)


class InMemorySectionRepository:
    """Dictionary-backed repository honouring the ``(doc_id, section_id)`` upsert key."""

    def __init__(self) -> None:
        self._materials: Dict[str, Material] = {}
        self._toc: Dict[str, TocAnalysis] = {}
        self._sections: Dict[Tuple[str, str], SectionRecord] = {}
        self._chunks: Dict[str, ChunkRecord] = {}

    # -- materials ------------------------------------------------------------

    def save_material(self, material: Material) -> None:
        self._materials[material.material_id] = material.model_copy(deep=True)
        self._changed()

    def get_material(self, material_id: str) -> Optional[Material]:
        material = self._materials.get(material_id)
        return material.model_copy(deep=True) if material else None

    def list_materials(
        self, subject_id: str | None = None, statuses: Iterable[str] | None = None
    ) -> List[Material]:
        allowed = set(statuses) if statuses is not None else None
        return [
            material.model_copy(deep=True)
            for material in self._materials.values()
            if (subject_id is None or material.subject_id == subject_id)
            and (allowed is None or material.status in allowed)
        ]

    # -- TOC analyses ---------------------------------------------------------

    def save_toc_analysis(self, analysis: TocAnalysis) -> None:
        self._toc[analysis.doc_id] = analysis.model_copy(deep=True)
        self._changed()

    def get_toc_analysis(self, doc_id: str) -> Optional[TocAnalysis]:
        analysis = self._toc.get(doc_id)
        return analysis.model_copy(deep=True) if analysis else None

    def mark_toc_section_processed(self, doc_id: str, index: int) -> bool:
        """Flag TOC entry ``index`` as processed.

        Returns ``True`` only when the flag flipped from false to true, which
        is also the only case in which ``processed_sections`` is incremented.
        """

        analysis = self._toc.get(doc_id)
        if analysis is None:
            raise RepositoryError(f"No TOC analysis stored for {doc_id!r}")
        if not 0 <= index < len(analysis.sections):
            raise RepositoryError(f"TOC index {index} out of range for {doc_id!r}")
        if analysis.sections[index].processed:
            return False
        analysis.sections[index] = analysis.sections[index].model_copy(update={"processed": True})
        analysis.processed_sections += 1
        self._changed()
        return True

    def set_toc_status(self, doc_id: str, status: str) -> None:
        analysis = self._toc.get(doc_id)
        if analysis is None:
            raise RepositoryError(f"No TOC analysis stored for {doc_id!r}")
        analysis.status = status
        self._changed()

    # -- sections -------------------------------------------------------------

    def upsert_section(self, record: SectionRecord) -> None:
        existing = self._sections.get((record.doc_id, record.section_id))
        if existing is not None and record.vector_id is None:
            record.vector_id = existing.vector_id
        self._sections[(record.doc_id, record.section_id)] = record
        self._changed()

    def get_section(self, doc_id: str, section_id: str) -> Optional[SectionRecord]:
        return self._sections.get((doc_id, section_id))

    def list_sections(self, doc_id: str | None = None) -> List[SectionRecord]:
        records = [
            record for (owner, _), record in self._sections.items() if doc_id is None or owner == doc_id
        ]
        return sorted(records, key=lambda record: (record.doc_id, record.toc_index, record.part_number))

    def set_section_vector_id(self, doc_id: str, section_id: str, vector_id: str) -> None:
        record = self._sections.get((doc_id, section_id))
        if record is None:
            raise RepositoryError(f"Section {section_id!r} not stored for {doc_id!r}")
        record.vector_id = vector_id
        self._changed()

    def prune_section_parts(self, doc_id: str, toc_index: int, keep: Iterable[str]) -> List[str]:
        """Drop records of TOC entry ``toc_index`` not listed in ``keep``, with their chunks.

        A section re-split under a different size limit leaves parts behind
        otherwise (old ``_embedpartN`` records or the old unsplit record).
        """

        kept = set(keep)
        stale = [
            section_id
            for (owner, section_id), record in self._sections.items()
            if owner == doc_id and record.toc_index == toc_index and section_id not in kept
        ]
        if not stale:
            return []
        for section_id in stale:
            del self._sections[(doc_id, section_id)]
        removed = set(stale)
        for chunk_id in [
            chunk_id
            for chunk_id, record in self._chunks.items()
            if record.doc_id == doc_id and record.section_id in removed
        ]:
            del self._chunks[chunk_id]
        LOGGER.info("Pruned %s stale parts of TOC entry %s in %s", len(stale), toc_index, doc_id)
        self._changed()
        return stale

    # -- chunks ---------------------------------------------------------------

    def replace_section_chunks(
        self, doc_id: str, section_id: str, chunks: Iterable[ChunkRecord]
    ) -> None:
        """Swap the chunks of one section part for ``chunks``."""

        stale = [
            chunk_id
            for chunk_id, record in self._chunks.items()
            if record.doc_id == doc_id and record.section_id == section_id
        ]
        for chunk_id in stale:
            del self._chunks[chunk_id]
        for record in chunks:
            self._chunks[record.chunk_id] = record
        self._changed()

    def upsert_chunk(self, record: ChunkRecord) -> None:
        existing = self._chunks.get(record.chunk_id)
        if existing is not None and record.vector_id is None:
            record.vector_id = existing.vector_id
        self._chunks[record.chunk_id] = record
        self._changed()

    def list_chunks(self, doc_id: str | None = None, section_id: str | None = None) -> List[ChunkRecord]:
        records = [
            record
            for record in self._chunks.values()
            if (doc_id is None or record.doc_id == doc_id)
            and (section_id is None or record.section_id == section_id)
        ]
        return sorted(records, key=lambda record: (record.doc_id, record.char_start, record.paragraph_idx))

    def set_chunk_vector_id(self, chunk_id: str, vector_id: str) -> None:
        record = self._chunks.get(chunk_id)
        if record is None:
            raise RepositoryError(f"Chunk {chunk_id!r} not stored")
        record.vector_id = vector_id
        self._changed()

    def _changed(self) -> None:
        """Hook for subclasses that persist state."""


class JsonFileSectionRepository(InMemorySectionRepository):
    """Repository that mirrors its state into a JSON file after every write."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._loading = False
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RepositoryError(f"Failed to load repository from {self._path}", cause=exc) from exc

        self._loading = True
        try:
            for item in payload.get("materials", []):
                self.save_material(Material.model_validate(item))
            for item in payload.get("toc_analyses", []):
                self.save_toc_analysis(TocAnalysis.model_validate(item))
            for item in payload.get("sections", []):
                record = SectionRecord.from_dict(item)
                self._sections[(record.doc_id, record.section_id)] = record
            for item in payload.get("chunks", []):
                record = ChunkRecord.from_dict(item)
                self._chunks[record.chunk_id] = record
        finally:
            self._loading = False
        LOGGER.debug("Loaded repository state from %s", self._path)

    def _changed(self) -> None:
        if self._loading:
            return
        payload = {
            "materials": [material.model_dump(mode="json") for material in self._materials.values()],
            "toc_analyses": [analysis.model_dump(mode="json") for analysis in self._toc.values()],
            "sections": [record.to_dict() for record in self._sections.values()],
            "chunks": [record.to_dict() for record in self._chunks.values()],
        }
        tmp_path = self._path.with_suffix(".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise RepositoryError(f"Failed to write repository to {self._path}", cause=exc) from exc


__all__ = ["InMemorySectionRepository", "JsonFileSectionRepository"]
