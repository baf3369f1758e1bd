from __future__ import annotations

from tocindex.config import ScoringConfig, SearchConfig, SectioningConfig


def test_sectioning_config_defaults() -> None:
    config = SectioningConfig()

    assert config.embedding_max_chars == 10_000
    assert config.chunk_max_chars == 2_000
    assert config.min_section_chars == 50
    assert config.page_separator == "\n\n"


def test_sectioning_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("TOCINDEX_EMBED_MAX_CHARS", "8000")
    monkeypatch.setenv("TOCINDEX_MIN_SECTION_CHARS", "not-a-number")
    monkeypatch.setenv("TOCINDEX_REGISTER_CHUNKS", "off")

    config = SectioningConfig.from_env()

    assert config.embedding_max_chars == 8000
    assert config.min_section_chars == 50
    assert config.register_chunks is False


def test_scoring_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("TOCINDEX_SCORE_TOC_BONUS", "0.3")

    config = ScoringConfig.from_env()

    assert config.toc_bonus == 0.3
    assert config.vector_chunk_score == 0.8
    assert config.max_score == 1.0


def test_search_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("TOCINDEX_SEARCH_MAX_RESULTS", "25")

    config = SearchConfig.from_env()

    assert config.max_results == 25
    assert config.ready_statuses == ("ready", "toc_ready")
