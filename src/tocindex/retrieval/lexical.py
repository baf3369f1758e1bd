"""Lexical chunk relevance used as the gate in front of vector ranking."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Generic, List, Protocol, Sequence, TypeVar

LOGGER = logging.getLogger(__name__)

_WORD_SPLIT_RE = re.compile(r"\s+")
MIN_QUERY_WORD_CHARS = 3
MIN_CONTAINED_WORD_CHARS = 3
MIN_FUZZY_WORD_CHARS = 4
MAX_WORD_EDIT_DISTANCE = 2


class HasContent(Protocol):
    content: str


ChunkT = TypeVar("ChunkT", bound=HasContent)


def query_words(query: str) -> List[str]:
    """Lower-cased words of ``query`` longer than two characters."""

    return [word for word in _WORD_SPLIT_RE.split(query.lower()) if len(word) >= MIN_QUERY_WORD_CHARS]


def levenshtein(first: str, second: str) -> int:
    if first == second:
        return 0
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for row, char_a in enumerate(first, start=1):
        current = [row]
        for column, char_b in enumerate(second, start=1):
            current.append(
                min(
                    previous[column] + 1,
                    current[column - 1] + 1,
                    previous[column - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def words_similar(query_word: str, content_word: str) -> bool:
    """Containment either way, or a small edit distance for longer word forms."""

    shorter = min(len(query_word), len(content_word))
    if shorter >= MIN_CONTAINED_WORD_CHARS and (
        query_word in content_word or content_word in query_word
    ):
        return True
    if shorter < MIN_FUZZY_WORD_CHARS:
        return False
    if abs(len(query_word) - len(content_word)) > MAX_WORD_EDIT_DISTANCE:
        return False
    return levenshtein(query_word, content_word) <= MAX_WORD_EDIT_DISTANCE


@dataclass(frozen=True, slots=True)
class ScoredChunk(Generic[ChunkT]):
    chunk: ChunkT
    score: float


class LexicalChunkSearcher:
    """Score chunks by phrase containment and query-word overlap."""

    def __init__(
        self,
        *,
        phrase_weight: float = 1.0,
        overlap_weight: float = 0.8,
        short_content_chars: int = 100,
        short_content_penalty: float = 0.7,
        min_score: float = 0.1,
        limit: int = 10,
    ) -> None:
        self.phrase_weight = phrase_weight
        self.overlap_weight = overlap_weight
        self.short_content_chars = short_content_chars
        self.short_content_penalty = short_content_penalty
        self.min_score = min_score
        self.limit = limit

    def score(self, query: str, content: str) -> float:
        phrase = query.strip().lower()
        text = (content or "").lower()
        if not phrase or not text:
            return 0.0

        score = self.phrase_weight if phrase in text else 0.0
        words = query_words(phrase)
        if words:
            content_words = {word for word in _WORD_SPLIT_RE.split(text) if word}
            matched = [
                word
                for word in words
                if word in content_words or any(words_similar(word, other) for other in content_words)
            ]
            score += len(matched) / len(words) * self.overlap_weight
        if len(text) < self.short_content_chars:
            score *= self.short_content_penalty
        return score

    def rank(self, query: str, chunks: Sequence[ChunkT]) -> List[ScoredChunk[ChunkT]]:
        scored = [ScoredChunk(chunk, self.score(query, chunk.content)) for chunk in chunks]
        kept = [item for item in scored if item.score > self.min_score]
        kept.sort(key=lambda item: item.score, reverse=True)
        return kept[: self.limit]

    def search_similar_chunks(self, query: str, chunks: Sequence[ChunkT]) -> List[ChunkT]:
        """Return the best matching chunks, most relevant first."""

        return [item.chunk for item in self.rank(query, chunks)]


__all__ = [
    "LexicalChunkSearcher",
    "ScoredChunk",
    "levenshtein",
    "query_words",
    "words_similar",
]
