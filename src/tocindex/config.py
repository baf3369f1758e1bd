"""Runtime configuration loaded from environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Tuple

LOGGER = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _bool_from_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


@dataclass(slots=True)
class SectioningConfig:
    """Limits applied while turning TOC sections into persisted parts and chunks."""

    embedding_max_chars: int = 10_000
    chunk_max_chars: int = 2_000
    min_section_chars: int = 50
    max_embedding_parts: int = 50
    split_search_ratio: float = 0.3
    max_title_variations: int = 50
    page_separator: str = PAGE_SEPARATOR
    register_chunks: bool = True

    @classmethod
    def from_env(cls) -> "SectioningConfig":
        return cls(
            embedding_max_chars=_int_from_env("TOCINDEX_EMBED_MAX_CHARS", 10_000),
            chunk_max_chars=_int_from_env("TOCINDEX_CHUNK_MAX_CHARS", 2_000),
            min_section_chars=_int_from_env("TOCINDEX_MIN_SECTION_CHARS", 50),
            max_embedding_parts=_int_from_env("TOCINDEX_MAX_EMBED_PARTS", 50),
            register_chunks=_bool_from_env("TOCINDEX_REGISTER_CHUNKS", True),
        )


@dataclass(slots=True)
class ScoringConfig:
    """Heuristic constants used when combining chunk hits with TOC matches."""

    vector_chunk_score: float = 0.8
    plain_chunk_score: float = 0.5
    toc_bonus: float = 0.2
    toc_only_score: float = 0.6
    max_score: float = 1.0
    top_k: int = 5
    toc_only_chunk_limit: int = 3
    candidate_chunk_limit: int = 100

    @classmethod
    def from_env(cls) -> "ScoringConfig":
        return cls(
            vector_chunk_score=_float_from_env("TOCINDEX_SCORE_VECTOR_CHUNK", 0.8),
            plain_chunk_score=_float_from_env("TOCINDEX_SCORE_PLAIN_CHUNK", 0.5),
            toc_bonus=_float_from_env("TOCINDEX_SCORE_TOC_BONUS", 0.2),
            toc_only_score=_float_from_env("TOCINDEX_SCORE_TOC_ONLY", 0.6),
            max_score=_float_from_env("TOCINDEX_SCORE_MAX", 1.0),
            top_k=_int_from_env("TOCINDEX_SCORE_TOP_K", 5),
        )


@dataclass(slots=True)
class SearchConfig:
    """Options for the lexical subject-wide search."""

    max_results: int = 10
    min_relevance: float = 0.1
    section_share: float = 0.7
    chunk_weight: float = 0.8
    preview_chars: int = 200
    chunk_preview_chars: int = 150
    ready_statuses: Tuple[str, ...] = ("ready", "toc_ready")

    @classmethod
    def from_env(cls) -> "SearchConfig":
        return cls(
            max_results=_int_from_env("TOCINDEX_SEARCH_MAX_RESULTS", 10),
            min_relevance=_float_from_env("TOCINDEX_SEARCH_MIN_RELEVANCE", 0.1),
            preview_chars=_int_from_env("TOCINDEX_SEARCH_PREVIEW_CHARS", 200),
        )


__all__ = [
    "PAGE_SEPARATOR",
    "ScoringConfig",
    "SearchConfig",
    "SectioningConfig",
]
