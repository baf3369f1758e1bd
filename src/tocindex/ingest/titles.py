"""Locating TOC titles inside noisy page text.

OCR output routinely splits or merges words ("Uvod u  raču narstvo"), so a
title is searched with an ordered list of matching strategies. Each strategy
is a pure function of ``(text, title, start)`` and reports the position of
the first character of the match in the original text.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

LOGGER = logging.getLogger(__name__)

_NUMERIC_PREFIX_RE = re.compile(r"^[\d\.\s]+")
_TRAILING_PAGE_RE = re.compile(r"[\.\s\-_]+\d+\s*$")
_LEADER_RE = re.compile(r"[\.]{2,}|\-{2,}|_{2,}")
_WHITESPACE_RE = re.compile(r"\s+")

MIN_TITLE_CHARS = 2
FUZZY_MIN_TITLE_CHARS = 6


def generate_clean_title(title: str) -> str:
    """Strip section numbering, dot leaders and trailing page numbers from a TOC title."""

    cleaned = _NUMERIC_PREFIX_RE.sub("", title or "")
    cleaned = _TRAILING_PAGE_RE.sub("", cleaned)
    cleaned = _LEADER_RE.sub("", cleaned)
    return cleaned.strip()


def normalize_title(title: str) -> str:
    """Return the searchable form of ``title`` or ``""`` when too short to search."""

    normalized = unicodedata.normalize("NFC", title or "")
    normalized = _NUMERIC_PREFIX_RE.sub("", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip()
    if len(normalized) < MIN_TITLE_CHARS:
        return ""
    return normalized


class MatchStrategy(str, Enum):
    EXACT = "exact"
    SPACING = "spacing"
    FLEXIBLE = "flexible"
    FUZZY = "fuzzy"


@dataclass(frozen=True, slots=True)
class TitleMatch:
    position: int
    end: int
    strategy: MatchStrategy
    distance: int = 0


class TitleMatcher(Protocol):
    strategy: MatchStrategy

    def find(self, text: str, title: str, start: int = 0) -> Optional[TitleMatch]:
        ...


def _search(pattern: str, text: str, start: int) -> Optional[re.Match[str]]:
    return re.compile(pattern, re.IGNORECASE).search(text, start)


class ExactTitleMatcher:
    """Case-insensitive literal search."""

    strategy = MatchStrategy.EXACT

    def find(self, text: str, title: str, start: int = 0) -> Optional[TitleMatch]:
        match = _search(re.escape(title), text, start)
        if match is None:
            return None
        return TitleMatch(match.start(), match.end(), self.strategy)


def spacing_variations(title: str, limit: int = 50) -> List[str]:
    """Enumerate OCR-like spacing variants of ``title`` in a fixed order.

    The list starts with the title itself, then the title with its spaces
    removed, fully character-spaced, with one or two extra spaces at every
    character boundary and finally a space every second, third and fourth
    character. Duplicates are dropped and at most ``limit`` entries returned.
    """

    candidates: List[str] = [title, title.replace(" ", ""), " ".join(title)]
    for index in range(1, len(title)):
        candidates.append(title[:index] + " " + title[index:])
        candidates.append(title[:index] + "  " + title[index:])
    compact = title.replace(" ", "")
    for stride in (2, 3, 4):
        if len(compact) > stride:
            candidates.append(
                " ".join(compact[offset : offset + stride] for offset in range(0, len(compact), stride))
            )

    variations: List[str] = []
    seen = set()
    for candidate in candidates:
        if candidate in seen or len(candidate.strip()) < MIN_TITLE_CHARS:
            continue
        seen.add(candidate)
        variations.append(candidate)
        if len(variations) >= limit:
            break
    return variations


class SpacingVariationMatcher:
    """Try a bounded set of spacing variants and keep the earliest hit."""

    strategy = MatchStrategy.SPACING

    def __init__(self, max_variations: int = 50) -> None:
        self.max_variations = max_variations

    def find(self, text: str, title: str, start: int = 0) -> Optional[TitleMatch]:
        best: Optional[re.Match[str]] = None
        for variant in spacing_variations(title, self.max_variations):
            match = _search(re.escape(variant), text, start)
            if match is not None and (best is None or match.start() < best.start()):
                best = match
        if best is None:
            return None
        return TitleMatch(best.start(), best.end(), self.strategy)


class FlexibleWhitespaceMatcher:
    """Allow any amount of whitespace (including none) between title characters."""

    strategy = MatchStrategy.FLEXIBLE

    def find(self, text: str, title: str, start: int = 0) -> Optional[TitleMatch]:
        characters = [re.escape(char) for char in title if not char.isspace()]
        if len(characters) < MIN_TITLE_CHARS:
            return None
        match = _search(r"\s*".join(characters), text, start)
        if match is None:
            return None
        return TitleMatch(match.start(), match.end(), self.strategy)


class BoundedEditDistanceMatcher:
    """Approximate title search tolerating a few OCR substitutions.

    Alignments are anchored at word starts and accept at most
    ``len(title) // chars_per_error`` edits (capped at ``max_distance``).
    Each anchor only fills a diagonal band of the edit-distance table and is
    abandoned as soon as a whole row exceeds the limit, so a title that is
    absent costs a few cells per word of text. Short titles are never fuzzily
    matched.
    """

    strategy = MatchStrategy.FUZZY

    def __init__(self, chars_per_error: int = 8, max_distance: int = 3) -> None:
        self.chars_per_error = chars_per_error
        self.max_distance = max_distance

    def allowed_distance(self, title: str) -> int:
        if len(title) < FUZZY_MIN_TITLE_CHARS:
            return 0
        return min(self.max_distance, max(1, len(title) // self.chars_per_error))

    def find(self, text: str, title: str, start: int = 0) -> Optional[TitleMatch]:
        limit = self.allowed_distance(title)
        if limit == 0:
            return None
        pattern = title.lower()

        best: Optional[TitleMatch] = None
        for anchor in _word_starts(text, start):
            if best is not None and anchor >= best.end:
                break
            aligned = _anchored_distance(text, anchor, pattern, limit)
            if aligned is None:
                continue
            distance, end = aligned
            if best is None or distance < best.distance:
                best = TitleMatch(anchor, end, self.strategy, distance)
                if distance == 0:
                    break
        return best


def _word_starts(text: str, start: int) -> Iterator[int]:
    previous_alnum = start > 0 and text[start - 1].isalnum()
    for position in range(start, len(text)):
        current_alnum = text[position].isalnum()
        if current_alnum and not previous_alnum:
            yield position
        previous_alnum = current_alnum


def _anchored_distance(text: str, anchor: int, pattern: str, limit: int) -> Optional[Tuple[int, int]]:
    """Edit distance of ``pattern`` to the best prefix of ``text[anchor:]`` and that prefix's end."""

    size = len(pattern)
    candidate = text[anchor : anchor + size + limit].lower()
    width = len(candidate)
    over = limit + 1
    previous = list(range(width + 1))
    for row in range(1, size + 1):
        current = [over] * (width + 1)
        if row <= limit:
            current[0] = row
        char = pattern[row - 1]
        for column in range(max(1, row - limit), min(width, row + limit) + 1):
            cost = min(
                previous[column - 1] + (char != candidate[column - 1]),
                previous[column] + 1,
                current[column - 1] + 1,
            )
            current[column] = min(cost, over)
        if min(current) > limit:
            return None
        previous = current

    column = min(range(width + 1), key=lambda index: (previous[index], abs(index - size)))
    if previous[column] > limit:
        return None
    return previous[column], anchor + column


def default_matchers(max_variations: int = 50) -> List[TitleMatcher]:
    return [
        ExactTitleMatcher(),
        SpacingVariationMatcher(max_variations),
        FlexibleWhitespaceMatcher(),
        BoundedEditDistanceMatcher(),
    ]


def find_title(
    text: str,
    title: str,
    start: int = 0,
    matchers: Optional[Sequence[TitleMatcher]] = None,
) -> Optional[TitleMatch]:
    """Return the first match produced by the ordered ``matchers`` or ``None``."""

    searchable = normalize_title(title)
    if not searchable or not text:
        return None
    for matcher in matchers if matchers is not None else default_matchers():
        match = matcher.find(text, searchable, start)
        if match is not None:
            LOGGER.debug(
                "Title %r located at %s using %s", searchable, match.position, match.strategy.value
            )
            return match
    return None


__all__ = [
    "BoundedEditDistanceMatcher",
    "ExactTitleMatcher",
    "FlexibleWhitespaceMatcher",
    "MatchStrategy",
    "SpacingVariationMatcher",
    "TitleMatch",
    "TitleMatcher",
    "default_matchers",
    "find_title",
    "generate_clean_title",
    "normalize_title",
    "spacing_variations",
]
