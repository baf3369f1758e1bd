"""Chroma vector store adapter."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from .errors import VectorStoreUnavailableError

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection


def _scalar_metadata(metadata: Dict[str, Any] | None) -> Dict[str, Any]:
    """Chroma only accepts non-null str/int/float/bool metadata values."""

    return {
        key: value
        for key, value in (metadata or {}).items()
        if isinstance(value, (str, int, float, bool))
    }


class ChromaStore:
    """Adapter around a persistent Chroma database."""

    def __init__(
        self,
        persist_dir: str | Path,
        *,
        client: Optional["ClientAPI"] = None,
    ) -> None:
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        if client is not None:
            self._client = client
        else:
            try:
                import chromadb  # type: ignore import-not-found
            except ImportError as exc:  # pragma: no cover - depends on optional dependency
                raise VectorStoreUnavailableError(
                    "VECTOR_STORE=chroma requires the 'chromadb' package to be installed",
                    cause=exc,
                ) from exc
            try:
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            except Exception as exc:  # pragma: no cover - depends on chromadb runtime
                raise VectorStoreUnavailableError(
                    "Failed to initialise Chroma persistent client",
                    cause=exc,
                ) from exc
        self._collections: Dict[str, "Collection"] = {}

    def create_collection(self, name: str, *, metadata: Optional[Dict[str, Any]] = None) -> "Collection":
        """Return an existing collection or create a new one."""

        collection = self._collections.get(name)
        if collection is None:
            collection = self._client.get_or_create_collection(name=name, metadata=metadata)
            self._collections[name] = collection
        return collection

    def add(
        self,
        name: str,
        *,
        ids: Iterable[str],
        embeddings: Iterable[Sequence[float]],
        documents: Iterable[str],
        metadatas: Iterable[Dict[str, Any] | None] | None = None,
    ) -> None:
        """Upsert embeddings and documents into a collection."""

        collection = self.create_collection(name)

        id_list = list(ids)
        embedding_list = [list(map(float, embedding)) for embedding in embeddings]
        document_list = list(documents)
        metadata_source = list(metadatas) if metadatas is not None else [None] * len(id_list)
        if not len(id_list) == len(embedding_list) == len(document_list) == len(metadata_source):
            raise ValueError("All inputs must be of the same length")

        collection.upsert(
            ids=id_list,
            embeddings=embedding_list,
            documents=document_list,
            metadatas=[_scalar_metadata(metadata) for metadata in metadata_source],
        )

    def get_embeddings(self, name: str, ids: Sequence[str]) -> Dict[str, List[float]]:
        """Return stored embeddings for whichever of ``ids`` exist."""

        if not ids:
            return {}
        collection = self.create_collection(name)
        result = collection.get(ids=list(ids), include=["embeddings"])
        found_ids = result.get("ids") or []
        embeddings = result.get("embeddings")
        if embeddings is None:
            return {}
        return {
            item_id: [float(value) for value in embedding]
            for item_id, embedding in zip(found_ids, embeddings)
        }


__all__ = ["ChromaStore"]
