"""Shared fixtures: a small five-page material with a three-entry TOC."""
from __future__ import annotations

import logging
from typing import Callable, List

import pytest

from tocindex.embeddings import reset_embedding_model_cache
from tocindex.ingest.models import Material, PageText, ProcessedSection, TocAnalysis, TocSection
from tocindex.ingest.pipeline import SectionIngestionPipeline
from tocindex.logging_config import AUDIT_LOGGER_NAME
from tocindex.repository import InMemorySectionRepository, reset_repository_cache
from tocindex.vectorstore import reset_vector_store_cache

SAMPLE_PAGES = {
    1: "Sadržaj\n1 Uvod 2\n2 Hardver 3\n3 Softver 4",
    2: (
        "Uvod\n\nRačunarstvo proučava obradu podataka pomoću računara. "
        "Ovo poglavlje daje pregled osnovnih pojmova i istorijskog razvoja."
    ),
    3: (
        "Hardver\n\nHardver čine fizičke komponente računara: procesor, memorija "
        "i ulazno-izlazni uređaji."
    ),
    4: (
        "Procesor izvršava instrukcije programa, a radna memorija čuva podatke tokom rada."
        "\n\nSoftver\n\nSoftver obuhvata programe koji upravljaju računarom."
    ),
    5: (
        "Operativni sistem je najvažniji sistemski program. "
        "Aplikacije rješavaju konkretne zadatke korisnika."
    ),
}


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("INSTALL_HEAVY", "false")
    monkeypatch.setenv("VECTOR_STORE", "mock")
    monkeypatch.delenv("TOCINDEX_REPOSITORY", raising=False)
    monkeypatch.delenv("MOCK_VECTOR_PERSIST_DIR", raising=False)
    monkeypatch.delenv("TOCINDEX_AUDIT_LOG", raising=False)
    reset_embedding_model_cache()
    reset_vector_store_cache()
    reset_repository_cache()
    yield
    reset_embedding_model_cache()
    reset_vector_store_cache()
    reset_repository_cache()


@pytest.fixture
def audit_log(tmp_path):
    """Audit log location; handlers installed by ``configure_logging`` are closed afterwards."""

    yield tmp_path / "logs" / "ingest_audit.log"
    for logger in (logging.getLogger(AUDIT_LOGGER_NAME), logging.getLogger()):
        for handler in list(logger.handlers):
            if type(handler) in (logging.StreamHandler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()
    logging.getLogger().setLevel(logging.WARNING)


@pytest.fixture
def material() -> Material:
    return Material(
        material_id="mat1",
        title="Osnove informatike",
        subject_id="inf",
        faculty_id="fon",
        department_id="is",
        year=1,
    )


@pytest.fixture
def sample_pages() -> List[PageText]:
    return [PageText(page_number=number, text=text) for number, text in SAMPLE_PAGES.items()]


@pytest.fixture
def sample_document() -> str:
    """The sample pages as one document, joined the way offsets are measured."""

    return "\n\n".join(SAMPLE_PAGES[number] for number in sorted(SAMPLE_PAGES))


@pytest.fixture
def sample_toc() -> TocAnalysis:
    return TocAnalysis(
        doc_id="mat1",
        sections=[
            TocSection(title="1 Uvod", level=1, page_start=2, page_end=2),
            TocSection(title="2 Hardver", level=1, page_start=3, page_end=4),
            TocSection(title="3 Softver", level=1, page_start=4, page_end=5),
        ],
    )


@pytest.fixture
def seeded_repository(material: Material, sample_toc: TocAnalysis) -> InMemorySectionRepository:
    repository = InMemorySectionRepository()
    repository.save_material(material)
    repository.save_toc_analysis(sample_toc)
    return repository


@pytest.fixture
def ingested_repository(
    seeded_repository: InMemorySectionRepository, sample_pages: List[PageText]
) -> InMemorySectionRepository:
    SectionIngestionPipeline(seeded_repository).run("mat1", sample_pages)
    return seeded_repository


@pytest.fixture
def make_section() -> Callable[..., ProcessedSection]:
    def _make(content: str, **overrides) -> ProcessedSection:
        values = dict(
            section_id="section_mat1_2",
            doc_id="mat1",
            toc_index=2,
            title="3 Softver",
            clean_title="Softver",
            path="3",
            level=1,
            page_start=4,
            page_end=5,
            char_start=100,
            char_end=100 + len(content),
            content=content,
        )
        values.update(overrides)
        return ProcessedSection(**values)

    return _make
