"""Embedding helpers backed by Sentence Transformers."""
from __future__ import annotations

import hashlib
import logging
import math
import os
import re
import time
from functools import lru_cache
from typing import List, Sequence

from .telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
FALLBACK_DIMENSION = 384
FALLBACK_MODEL_NAME = "hashed-token-fallback"

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def heavy_dependencies_enabled() -> bool:
    """Return whether heavy dependencies should be initialised."""

    flag = os.getenv("INSTALL_HEAVY", "true").strip().lower()
    return flag not in {"0", "false", "no", "off"}


class EmbeddingModel:
    """Sentence-transformers model with a deterministic hashed-token fallback.

    The fallback projects lower-cased word tokens into a fixed number of
    signed buckets, so texts sharing vocabulary end up close together even
    without a neural model.
    """

    def __init__(
        self,
        model_name_or_path: str | None = None,
        *,
        device: str | None = None,
    ) -> None:
        model_path = model_name_or_path or os.getenv("EMBEDDING_MODEL_PATH", DEFAULT_MODEL_NAME)
        embedding_device = device or os.getenv("EMBEDDING_DEVICE")

        self._model = None
        self._dimension = FALLBACK_DIMENSION
        self._embedder = self._fallback_embed_texts
        self._model_name = FALLBACK_MODEL_NAME

        if not heavy_dependencies_enabled():
            LOGGER.info("INSTALL_HEAVY is disabled; using hashed-token fallback embeddings.")
            return

        try:
            from sentence_transformers import SentenceTransformer  # type: ignore import-not-found
        except ImportError as error:  # pragma: no cover - depends on optional deps
            LOGGER.warning(
                "sentence-transformers is unavailable; using hashed-token fallback embeddings (%s).",
                error,
            )
            return

        try:
            self._model = SentenceTransformer(model_path, device=embedding_device)
        except Exception as error:  # pragma: no cover - model download or load failure
            LOGGER.warning(
                "Failed to initialize sentence-transformers model '%s': %s. "
                "Using hashed-token fallback embeddings instead.",
                model_path,
                error,
            )
            self._model = None
            return

        self._model_name = model_path
        self._dimension = int(self._model.get_sentence_embedding_dimension())
        self._embedder = self._embed_texts_with_model

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        return int(self._dimension)

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        started = time.perf_counter()
        try:
            embeddings = self._embedder(texts)
        except Exception as error:
            emit_embeddings_event(
                model=self._model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(error)],
            )
            raise

        emit_embeddings_event(
            model=self._model_name,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return embeddings

    def _embed_texts_with_model(self, texts: Sequence[str]) -> List[List[float]]:
        embeddings = self._model.encode(  # type: ignore[union-attr]
            list(texts),
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return embeddings.tolist()

    def _fallback_embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._hashed_embedding(str(text)) for text in texts]

    def _hashed_embedding(self, text: str) -> List[float]:
        vector = [0.0] * self._dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimension
            vector[bucket] += 1.0 if digest[4] % 2 == 0 else -1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]


@lru_cache()
def get_embedding_model() -> EmbeddingModel:
    """Return a cached embedding model instance."""

    return EmbeddingModel()


def reset_embedding_model_cache() -> None:
    """Clear the cached embedding model instance (primarily for testing)."""

    get_embedding_model.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "EmbeddingModel",
    "get_embedding_model",
    "heavy_dependencies_enabled",
    "reset_embedding_model_cache",
]
