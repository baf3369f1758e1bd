from __future__ import annotations

import pytest

from tocindex.config import SearchConfig
from tocindex.errors import MaterialNotFoundError
from tocindex.ingest.models import Material
from tocindex.repository import InMemorySectionRepository
from tocindex.retrieval.subject_search import (
    NO_READY_MATERIALS,
    SearchHit,
    SearchOptions,
    SubjectSearchRanker,
    SubjectSearchResult,
    build_ai_context,
    content_preview,
    search_suggestions,
    text_relevance_score,
)


def _hit(title: str, score: float = 5.0) -> SearchHit:
    return SearchHit(
        kind="section",
        id=f"mat1:{title}",
        material_id="mat1",
        material_title="Osnove informatike",
        title=title,
        content="x" * 1500,
        relevance_score=score,
        page_start=3,
        page_end=4,
        path="2",
        content_preview="x",
    )


def test_score_is_capped_at_twenty() -> None:
    assert text_relevance_score("hardver", "Hardver", "", "hardver") == 20.0


@pytest.mark.parametrize(
    "query",
    ["hardver", "procesor memorija", "nepoznato", "hardver procesor memorija disk"],
)
def test_score_stays_within_bounds(query: str) -> None:
    content = "Hardver čine procesor i memorija. " * 20

    assert 0.0 <= text_relevance_score(query, "2 Hardver", content) <= 20.0


def test_score_does_not_decrease_with_more_matched_words() -> None:
    content = "procesor memorija disk " * 10

    one = text_relevance_score("procesor xyzw", "", content)
    two = text_relevance_score("procesor disk", "", content)

    assert one <= two


def test_content_preview_centres_on_first_match() -> None:
    content = "a" * 100 + " hardver je fizički dio računara " + "b" * 300

    preview = content_preview(content, "hardver", max_length=80)

    assert preview.startswith("...")
    assert preview.endswith("...")
    assert "hardver" in preview


def test_content_preview_without_match_starts_at_beginning() -> None:
    content = "Uvodni tekst " + "c" * 300

    preview = content_preview(content, "kvantna", max_length=50)

    assert preview.startswith("Uvodni tekst")
    assert preview.endswith("...")


def test_search_without_ready_materials() -> None:
    repository = InMemorySectionRepository()
    repository.save_material(Material(material_id="mat9", subject_id="inf", status="processing"))

    result = SubjectSearchRanker(repository).search_in_subject("inf", "hardver")

    assert result.total_results == 0
    assert result.suggestions == [NO_READY_MATERIALS]


def test_search_ranks_sections_and_chunks(ingested_repository) -> None:
    result = SubjectSearchRanker(ingested_repository).search_in_subject("inf", "hardver")

    assert result.materials_searched == ["mat1"]
    assert result.total_results == len(result.results) == 2
    assert [hit.kind for hit in result.results] == ["section", "chunk"]
    section_hit, chunk_hit = result.results
    assert section_hit.section_id == "section_mat1_1"
    assert section_hit.material_title == "Osnove informatike"
    assert chunk_hit.relevance_score == pytest.approx(section_hit.relevance_score * 0.8)
    assert all(0.1 <= hit.relevance_score <= 20.0 for hit in result.results)


def test_search_without_matches_offers_suggestions(ingested_repository) -> None:
    result = SubjectSearchRanker(ingested_repository).search_in_subject("inf", "kvantna gravitacija")

    assert result.total_results == 0
    assert result.suggestions


def test_search_options_filter_by_page_range(ingested_repository) -> None:
    ranker = SubjectSearchRanker(ingested_repository)

    result = ranker.search_in_subject("inf", "hardver", SearchOptions(page_range=(4, 5)))

    assert result.results == []


def test_max_results_limits_output(ingested_repository) -> None:
    ranker = SubjectSearchRanker(ingested_repository, SearchConfig(max_results=1))

    result = ranker.search_in_subject("inf", "hardver")

    assert len(result.results) == 1


def test_search_in_material(ingested_repository) -> None:
    ranker = SubjectSearchRanker(ingested_repository)

    assert ranker.search_in_material("mat1", "softver").total_results >= 1
    with pytest.raises(MaterialNotFoundError):
        ranker.search_in_material("missing", "softver")


def test_search_suggestions() -> None:
    assert len(search_suggestions("hardver", [])) == 2
    assert search_suggestions("hardver", [_hit("a"), _hit("b"), _hit("c")]) == []
    suggestions = search_suggestions("hardver", [_hit("2 Hardver"), _hit("3 Softver")])
    assert suggestions[0] == "Try broader search terms to find more results"
    assert suggestions[1] == "Related topics you might search: 3 Softver"


def test_build_ai_context() -> None:
    result = SubjectSearchResult(
        query="hardver",
        total_results=1,
        results=[_hit("2 Hardver", 7.25)],
        materials_searched=["mat1"],
    )

    context = build_ai_context(result)

    section = context["relevant_sections"][0]
    assert section["source"] == "Osnove informatike, 2, Page 3-4"
    assert section["relevance"] == 7.2
    assert section["content"].endswith("...")
    assert len(section["content"]) == 1003
    assert context["total_sources"] == 1
    assert "2 Hardver" in context["context_summary"]
