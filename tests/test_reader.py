from __future__ import annotations

from tocindex.retrieval.reader import SectionReader


def test_reads_sections_overlapping_page_range(ingested_repository) -> None:
    result = SectionReader(ingested_repository).extract_content_by_page_range("mat1", 3, 4)

    assert [span.title for span in result.sections] == ["2 Hardver", "3 Softver"]
    assert result.content.startswith("## 2 Hardver\nHardver")
    assert "\n\n## 3 Softver\nSoftver" in result.content
    assert not result.truncated
    hardver, softver = ingested_repository.list_sections("mat1")[1:]
    assert result.total_length == len(hardver.content) + len(softver.content)


def test_truncates_at_max_chars(ingested_repository) -> None:
    result = SectionReader(ingested_repository).extract_content_by_page_range("mat1", 2, 5, max_chars=50)

    assert result.truncated
    assert len(result.sections) == 1
    assert result.content.endswith("[...]")
    assert result.total_length == 50


def test_empty_range_yields_no_content(ingested_repository) -> None:
    result = SectionReader(ingested_repository).extract_content_by_page_range("mat1", 40, 50)

    assert result.content == ""
    assert result.sections == []
