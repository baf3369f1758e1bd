"""Simple in-memory vector store for tests and local runs."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _MockStoredItem:
    id: str
    embedding: List[float]
    document: str
    metadata: dict


class MockVectorStore:
    """A minimal in-memory vector store keyed by record id.

    Adding an id that already exists replaces the stored item, mirroring
    Chroma's ``upsert``.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, _MockStoredItem]] = {}

    def create_collection(self, name: str, *, metadata: Optional[Dict[str, object]] = None) -> None:
        """Create a new collection if it does not exist yet."""

        self._collections.setdefault(name, {})

    def add(
        self,
        name: str,
        *,
        ids: Iterable[str],
        embeddings: Iterable[Sequence[float]],
        documents: Iterable[str],
        metadatas: Iterable[dict | None] | None = None,
    ) -> None:
        if name not in self._collections:
            raise KeyError(f"Collection '{name}' does not exist")

        id_list = list(ids)
        embedding_list = [list(map(float, embedding)) for embedding in embeddings]
        document_list = list(documents)
        metadata_list = list(metadatas) if metadatas is not None else [None] * len(id_list)
        if not len(id_list) == len(embedding_list) == len(document_list) == len(metadata_list):
            raise ValueError("All inputs must be of the same length")

        collection = self._collections[name]
        for item_id, embedding, document, metadata in zip(
            id_list, embedding_list, document_list, metadata_list
        ):
            collection[item_id] = _MockStoredItem(
                id=item_id,
                embedding=embedding,
                document=document,
                metadata=dict(metadata or {}),
            )

    def get_embeddings(self, name: str, ids: Sequence[str]) -> Dict[str, List[float]]:
        """Return stored embeddings for whichever of ``ids`` exist."""

        collection = self._collections.get(name, {})
        return {item_id: list(collection[item_id].embedding) for item_id in ids if item_id in collection}


class PersistentMockVectorStore(MockVectorStore):
    """Mock vector store that persists its state on disk for reuse."""

    def __init__(self, persist_dir: Path | str) -> None:
        super().__init__()
        self._persist_dir = Path(persist_dir)
        self._persist_dir.mkdir(parents=True, exist_ok=True)
        self._data_path = self._persist_dir / "mock_store.json"
        self._load()

    def create_collection(self, name: str, *, metadata: Optional[Dict[str, object]] = None) -> None:
        super().create_collection(name, metadata=metadata)
        self._save()

    def add(
        self,
        name: str,
        *,
        ids: Iterable[str],
        embeddings: Iterable[Sequence[float]],
        documents: Iterable[str],
        metadatas: Iterable[dict | None] | None = None,
    ) -> None:
        super().add(name, ids=ids, embeddings=embeddings, documents=documents, metadatas=metadatas)
        self._save()

    def _load(self) -> None:
        if not self._data_path.exists():
            return
        try:
            payload = json.loads(self._data_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("Failed to load mock vector store from %s", self._data_path)
            return

        for name, records in payload.items():
            collection = self._collections.setdefault(name, {})
            for record in records:
                item_id = str(record.get("id", ""))
                collection[item_id] = _MockStoredItem(
                    id=item_id,
                    embedding=[float(value) for value in record.get("embedding", [])],
                    document=str(record.get("document", "")),
                    metadata=dict(record.get("metadata", {})),
                )

    def _save(self) -> None:
        payload = {
            name: [
                {
                    "id": item.id,
                    "embedding": item.embedding,
                    "document": item.document,
                    "metadata": item.metadata,
                }
                for item in items.values()
            ]
            for name, items in self._collections.items()
        }
        tmp_path = self._data_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self._data_path)


def cosine_distance(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if len(vec_a) != len(vec_b):
        raise ValueError("Vectors must be of the same dimension")
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 1.0
    return 1.0 - dot / (norm_a * norm_b)


__all__ = [
    "MockVectorStore",
    "PersistentMockVectorStore",
    "cosine_distance",
]
