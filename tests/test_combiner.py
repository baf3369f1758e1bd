from __future__ import annotations

import logging

import pytest

from tocindex.config import ScoringConfig
from tocindex.ingest.pipeline import SectionIngestionPipeline
from tocindex.repository import ChunkRecord, InMemorySectionRepository
from tocindex.retrieval.combiner import RetrievalCombiner, title_matches_query
from tocindex.vectorstore import SectionVectorStore


def _chunk(section_id: str, content: str = "Procesor izvršava instrukcije.", vector_id=None) -> ChunkRecord:
    return ChunkRecord(
        chunk_id=f"chunk_{section_id}_0",
        doc_id="mat1",
        section_id=section_id,
        title="2 Hardver",
        path="2",
        page=3,
        paragraph_idx=0,
        char_start=0,
        char_end=len(content),
        content=content,
        vector_id=vector_id,
    )


@pytest.mark.parametrize(
    "title, message, expected",
    [
        ("2 Hardver", "Šta je hardver?", True),
        ("2 Hardver", "Objasni mi komponente hardvera", True),
        ("1 Uvod", "Šta je hardver?", False),
        ("3 Softver", "kvantna gravitacija", False),
    ],
)
def test_title_matches_query(title: str, message: str, expected: bool) -> None:
    assert title_matches_query(title, message) is expected


def test_toc_match_and_chunk_hit_are_combined(ingested_repository, material) -> None:
    candidates = RetrievalCombiner(ingested_repository).find_relevant_sections("Šta je hardver?", [material])

    assert candidates[0].section_id == "section_mat1_1"
    assert candidates[0].section_title == "2 Hardver"
    assert candidates[0].material_name == "Osnove informatike"
    assert candidates[0].relevance_score == pytest.approx(0.7)
    assert all(0.0 <= candidate.relevance_score <= 1.0 for candidate in candidates)


def test_no_lexical_match_returns_nothing(ingested_repository, material) -> None:
    combiner = RetrievalCombiner(ingested_repository)

    assert combiner.find_relevant_sections("kvantna gravitacija", [material]) == []


def test_toc_only_candidate_uses_section_chunks(ingested_repository, material) -> None:
    combiner = RetrievalCombiner(ingested_repository)

    candidates = combiner.combine(material, ["section_mat1_2"], [])

    assert len(candidates) == 1
    assert candidates[0].relevance_score == pytest.approx(0.6)
    assert candidates[0].content.startswith("Softver")


def test_malformed_section_ids_are_skipped(ingested_repository, material) -> None:
    combiner = RetrievalCombiner(ingested_repository)

    candidates = combiner.combine(material, ["bogus id"], [_chunk("not-a-section")])

    assert candidates == []


def test_chunks_of_one_section_are_merged(ingested_repository, material) -> None:
    combiner = RetrievalCombiner(ingested_repository)
    chunks = [_chunk("section_mat1_1", "Prvi dio."), _chunk("section_mat1_1", "Drugi dio.", vector_id="v")]

    candidates = combiner.combine(material, [], chunks)

    assert len(candidates) == 1
    assert candidates[0].content == "Prvi dio.\n\nDrugi dio."
    assert candidates[0].relevance_score == pytest.approx(0.8)


def test_scores_are_clamped(ingested_repository, material) -> None:
    combiner = RetrievalCombiner(ingested_repository, config=ScoringConfig(toc_bonus=0.9))

    candidates = combiner.combine(material, ["section_mat1_1"], [_chunk("section_mat1_1", vector_id="v")])

    assert candidates[0].relevance_score == 1.0


def test_top_k_limits_results(ingested_repository, material) -> None:
    combiner = RetrievalCombiner(ingested_repository)

    candidates = combiner.find_relevant_sections("procesor memorija programi računarom", [material], top_k=1)

    assert len(candidates) == 1


def test_vector_store_as_chunk_searcher(seeded_repository, sample_pages, material) -> None:
    store = SectionVectorStore()
    SectionIngestionPipeline(seeded_repository, store).run("mat1", sample_pages)

    candidates = RetrievalCombiner(seeded_repository, store).find_relevant_sections(
        "Šta je hardver?", [material]
    )

    assert candidates[0].section_id == "section_mat1_1"
    assert candidates[0].relevance_score == pytest.approx(1.0)
    assert candidates[0].to_dict()["sectionId"] == "section_mat1_1"


@pytest.mark.parametrize("doc_id", ["mat.1", "course:101", "_abc"])
def test_material_ids_with_punctuation_are_retrievable(doc_id, sample_pages, sample_toc, material) -> None:
    repository = InMemorySectionRepository()
    owned = material.model_copy(update={"material_id": doc_id})
    repository.save_material(owned)
    repository.save_toc_analysis(sample_toc.model_copy(update={"doc_id": doc_id}))
    SectionIngestionPipeline(repository).run(doc_id, sample_pages)

    candidates = RetrievalCombiner(repository).find_relevant_sections("Šta je hardver?", [owned])

    assert candidates[0].section_id == f"section_{doc_id}_1"
    assert candidates[0].relevance_score == pytest.approx(0.7)


def test_each_material_is_traced(ingested_repository, material, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="tocindex.retrieval.combiner"):
        RetrievalCombiner(ingested_repository).find_relevant_sections("Šta je hardver?", [material])

    traced = [
        record.msg
        for record in caplog.records
        if isinstance(record.msg, dict) and record.msg.get("step", "").startswith("retrieval.material")
    ]
    assert [event["step"] for event in traced] == ["retrieval.material.start", "retrieval.material.complete"]
    assert traced[-1]["details"] == {"material_id": "mat1"}
