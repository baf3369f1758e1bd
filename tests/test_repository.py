from __future__ import annotations

import json

import pytest

from tocindex.errors import RepositoryError
from tocindex.ingest.models import Material
from tocindex.repository import (
    ChunkRecord,
    InMemorySectionRepository,
    JsonFileSectionRepository,
    SectionRecord,
    get_repository,
)


def _section(section_id: str = "section_mat1_0", **overrides) -> SectionRecord:
    values = dict(
        doc_id="mat1",
        section_id=section_id,
        toc_index=0,
        title="1 Uvod",
        clean_title="Uvod",
        path="1",
        level=1,
        page_start=2,
        page_end=2,
        char_start=10,
        char_end=20,
        content="Uvodni tekst",
        semantic_type="section",
    )
    values.update(overrides)
    return SectionRecord(**values)


def _chunk(chunk_id: str, section_id: str = "section_mat1_0", **overrides) -> ChunkRecord:
    values = dict(
        chunk_id=chunk_id,
        doc_id="mat1",
        section_id=section_id,
        title="1 Uvod",
        path="1",
        page=2,
        paragraph_idx=0,
        char_start=10,
        char_end=20,
        content="Uvodni tekst",
    )
    values.update(overrides)
    return ChunkRecord(**values)


def test_mark_processed_flips_once(seeded_repository) -> None:
    assert seeded_repository.mark_toc_section_processed("mat1", 1) is True
    assert seeded_repository.mark_toc_section_processed("mat1", 1) is False

    analysis = seeded_repository.get_toc_analysis("mat1")
    assert analysis.processed_sections == 1
    assert analysis.sections[1].processed


def test_mark_processed_rejects_unknown_targets(seeded_repository) -> None:
    with pytest.raises(RepositoryError):
        seeded_repository.mark_toc_section_processed("mat1", 7)
    with pytest.raises(RepositoryError):
        seeded_repository.mark_toc_section_processed("missing", 0)


def test_returned_analysis_is_a_copy(seeded_repository) -> None:
    analysis = seeded_repository.get_toc_analysis("mat1")
    analysis.sections[0].processed = True

    assert not seeded_repository.get_toc_analysis("mat1").sections[0].processed


def test_upsert_section_keeps_vector_id() -> None:
    repository = InMemorySectionRepository()
    repository.upsert_section(_section())
    repository.set_section_vector_id("mat1", "section_mat1_0", "vec-1")

    repository.upsert_section(_section(content="Novi tekst"))

    record = repository.get_section("mat1", "section_mat1_0")
    assert record.content == "Novi tekst"
    assert record.vector_id == "vec-1"
    assert len(repository.list_sections()) == 1


def test_set_vector_id_for_unknown_records_raises() -> None:
    repository = InMemorySectionRepository()
    with pytest.raises(RepositoryError):
        repository.set_section_vector_id("mat1", "section_mat1_9", "vec")
    with pytest.raises(RepositoryError):
        repository.set_chunk_vector_id("chunk_x", "vec")


def test_replace_section_chunks_drops_stale_chunks() -> None:
    repository = InMemorySectionRepository()
    repository.replace_section_chunks("mat1", "section_mat1_0", [_chunk("a"), _chunk("b", paragraph_idx=1)])
    repository.upsert_chunk(_chunk("other", section_id="section_mat1_1", char_start=50))

    repository.replace_section_chunks("mat1", "section_mat1_0", [_chunk("c")])

    assert [chunk.chunk_id for chunk in repository.list_chunks("mat1")] == ["c", "other"]
    assert [chunk.chunk_id for chunk in repository.list_chunks("mat1", "section_mat1_1")] == ["other"]


def test_prune_section_parts_keeps_listed_ids_and_other_entries() -> None:
    repository = InMemorySectionRepository()
    repository.upsert_section(_section())
    repository.upsert_section(_section("section_mat1_0_embedpart1"))
    repository.upsert_section(_section("section_mat1_1", toc_index=1))
    repository.upsert_chunk(_chunk("stale"))
    repository.upsert_chunk(_chunk("kept", section_id="section_mat1_0_embedpart1"))

    removed = repository.prune_section_parts("mat1", 0, ["section_mat1_0_embedpart1"])

    assert removed == ["section_mat1_0"]
    assert [record.section_id for record in repository.list_sections("mat1")] == [
        "section_mat1_0_embedpart1",
        "section_mat1_1",
    ]
    assert [chunk.chunk_id for chunk in repository.list_chunks("mat1")] == ["kept"]
    assert repository.prune_section_parts("mat1", 0, ["section_mat1_0_embedpart1"]) == []


def test_list_materials_filters_subject_and_status(material) -> None:
    repository = InMemorySectionRepository()
    repository.save_material(material)
    repository.save_material(Material(material_id="mat2", subject_id="inf", status="processing"))
    repository.save_material(Material(material_id="mat3", subject_id="mat"))

    ready = repository.list_materials("inf", ("ready", "toc_ready"))

    assert [item.material_id for item in ready] == ["mat1"]
    assert len(repository.list_materials()) == 3


def test_json_repository_round_trips_state(tmp_path, material, sample_toc) -> None:
    path = tmp_path / "state" / "repository.json"
    repository = JsonFileSectionRepository(path)
    repository.save_material(material)
    repository.save_toc_analysis(sample_toc)
    repository.upsert_section(_section())
    repository.replace_section_chunks("mat1", "section_mat1_0", [_chunk("a")])
    repository.set_chunk_vector_id("a", "vec-a")
    repository.mark_toc_section_processed("mat1", 0)

    reloaded = JsonFileSectionRepository(path)

    assert reloaded.get_material("mat1") == material
    assert reloaded.get_toc_analysis("mat1").sections[0].processed
    assert reloaded.get_section("mat1", "section_mat1_0") == _section()
    assert reloaded.list_chunks("mat1")[0].vector_id == "vec-a"
    assert not path.with_suffix(".tmp").exists()


def test_json_repository_rejects_corrupt_file(tmp_path) -> None:
    path = tmp_path / "repository.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(RepositoryError):
        JsonFileSectionRepository(path)


def test_json_repository_writes_readable_payload(tmp_path, material) -> None:
    path = tmp_path / "repository.json"
    JsonFileSectionRepository(path).save_material(material)

    payload = json.loads(path.read_text(encoding="utf-8"))

    assert payload["materials"][0]["material_id"] == "mat1"


def test_get_repository_selects_backend(monkeypatch, tmp_path) -> None:
    assert isinstance(get_repository(), InMemorySectionRepository)
    assert get_repository() is get_repository()

    get_repository.cache_clear()
    monkeypatch.setenv("TOCINDEX_REPOSITORY", str(tmp_path / "repo.json"))

    assert isinstance(get_repository(), JsonFileSectionRepository)
