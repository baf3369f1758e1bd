"""Section and chunk registration against pluggable vector store backends."""

from __future__ import annotations

import logging
import os
import uuid
from functools import lru_cache
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, TypeVar, TYPE_CHECKING

from ..retrieval.lexical import HasContent, LexicalChunkSearcher
from ..telemetry import emit_vectorstore_event
from .errors import VectorStoreUnavailableError
from .mock_store import MockVectorStore, PersistentMockVectorStore, cosine_distance

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..embeddings import EmbeddingModel

LOGGER = logging.getLogger(__name__)

DEFAULT_SECTION_COLLECTION = "tocindex_sections"
DEFAULT_CHUNK_COLLECTION = "tocindex_chunks"


class VectorBackend(Protocol):
    def create_collection(self, name: str, *, metadata: Optional[Dict[str, object]] = None) -> object:
        ...

    def add(self, name: str, *, ids, embeddings, documents, metadatas=None) -> None:
        ...

    def get_embeddings(self, name: str, ids: Sequence[str]) -> Dict[str, List[float]]:
        ...


class VectorChunk(HasContent, Protocol):
    vector_id: Optional[str]


ChunkT = TypeVar("ChunkT", bound=VectorChunk)


def vector_id_for(kind: str, record_id: str) -> str:
    """Deterministic vector id, so re-registering a record overwrites it."""

    return uuid.uuid5(uuid.NAMESPACE_URL, f"tocindex:{kind}:{record_id}").hex


class SectionVectorStore:
    """Embed section and chunk content and register it with a vector backend."""

    def __init__(
        self,
        *,
        backend: Optional[VectorBackend] = None,
        embedding_model: Optional["EmbeddingModel"] = None,
        section_collection: str = DEFAULT_SECTION_COLLECTION,
        chunk_collection: str = DEFAULT_CHUNK_COLLECTION,
        lexical: Optional[LexicalChunkSearcher] = None,
    ) -> None:
        if embedding_model is None:
            from ..embeddings import get_embedding_model

            embedding_model = get_embedding_model()
        self.embedding_model = embedding_model
        self.backend: VectorBackend = backend if backend is not None else MockVectorStore()
        self.section_collection = section_collection
        self.chunk_collection = chunk_collection
        self.lexical = lexical or LexicalChunkSearcher()

        try:
            for name in (section_collection, chunk_collection):
                self.backend.create_collection(name, metadata={"hnsw:space": "cosine"})
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:  # pragma: no cover - unexpected backend failure
            raise VectorStoreUnavailableError(
                "Failed to initialise vector store collections", cause=exc
            ) from exc

    def add_section(self, section_id: str, content: str, metadata: Mapping[str, object] | None = None) -> str:
        """Register one section part and return its vector id."""

        return self._register(self.section_collection, "section", section_id, content, metadata)

    def add_chunk(self, chunk_id: str, content: str, metadata: Mapping[str, object] | None = None) -> str:
        """Register one chunk and return its vector id."""

        return self._register(self.chunk_collection, "chunk", chunk_id, content, metadata)

    def _register(
        self,
        collection: str,
        kind: str,
        record_id: str,
        content: str,
        metadata: Mapping[str, object] | None,
    ) -> str:
        vector_id = vector_id_for(kind, record_id)
        payload = {key: value for key, value in (metadata or {}).items() if value is not None}
        payload[f"{kind}_id"] = record_id
        payload["content_length"] = len(content)
        try:
            embeddings = self.embedding_model.embed_texts([content])
            self.backend.add(
                collection,
                ids=[vector_id],
                embeddings=embeddings,
                documents=[content],
                metadatas=[payload],
            )
        except VectorStoreUnavailableError as exc:
            emit_vectorstore_event("vectorstore.add", collection=collection, count=0, record_id=record_id, error=exc)
            raise
        except Exception as exc:
            emit_vectorstore_event("vectorstore.add", collection=collection, count=0, record_id=record_id, error=exc)
            raise VectorStoreUnavailableError(f"Failed to register {kind} {record_id}", cause=exc) from exc
        emit_vectorstore_event("vectorstore.add", collection=collection, count=1, record_id=record_id)
        return vector_id

    def search_similar_chunks(self, query: str, chunks: Sequence[ChunkT]) -> List[ChunkT]:
        """Rank ``chunks`` for ``query``.

        Chunks first pass the lexical gate; the survivors that carry a vector
        id are then ordered by embedding distance to the query, ahead of those
        that were never registered.
        """

        gated = self.lexical.search_similar_chunks(query, chunks)
        with_vectors = [chunk for chunk in gated if chunk.vector_id]
        if not with_vectors:
            return gated

        try:
            stored = self.backend.get_embeddings(
                self.chunk_collection, [chunk.vector_id for chunk in with_vectors]
            )
            query_embedding = self.embedding_model.embed_texts([query])[0]
        except Exception as exc:
            LOGGER.warning("Vector ranking unavailable, keeping lexical order: %s", exc)
            return gated

        def distance(chunk: ChunkT) -> float:
            embedding = stored.get(chunk.vector_id or "")
            if embedding is None or len(embedding) != len(query_embedding):
                return 2.0
            return cosine_distance(query_embedding, embedding)

        ranked = sorted(with_vectors, key=distance)
        return ranked + [chunk for chunk in gated if not chunk.vector_id]


@lru_cache()
def get_vector_store() -> SectionVectorStore:
    """Return a lazily initialised vector store selected by ``VECTOR_STORE``."""

    backend = os.getenv("VECTOR_STORE", "mock").strip().lower()

    if backend == "mock":
        persist_dir = os.getenv("MOCK_VECTOR_PERSIST_DIR")
        store: VectorBackend = PersistentMockVectorStore(persist_dir) if persist_dir else MockVectorStore()
        return SectionVectorStore(backend=store)

    if backend == "chroma":
        from .chroma_store import ChromaStore

        return SectionVectorStore(backend=ChromaStore(os.getenv("CHROMA_PERSIST_DIR", "chroma_db")))

    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


def reset_vector_store_cache() -> None:
    """Clear the cached vector store (primarily for testing)."""

    get_vector_store.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "MockVectorStore",
    "PersistentMockVectorStore",
    "SectionVectorStore",
    "VectorStoreUnavailableError",
    "get_vector_store",
    "reset_vector_store_cache",
    "vector_id_for",
]
