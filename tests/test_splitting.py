from __future__ import annotations

from tocindex.config import SectioningConfig
from tocindex.ingest.models import PageText
from tocindex.ingest.pages import DocumentLayout
from tocindex.ingest.splitting import PartSplitter


def test_section_below_ceiling_is_returned_unchanged(make_section) -> None:
    section = make_section("Kratak sadržaj sekcije.")

    assert PartSplitter().split_for_embedding(section) is section


def test_oversized_section_yields_head_with_follow_up_parts(make_section) -> None:
    content = "abcd " * 11_000
    section = make_section(content)

    head = PartSplitter(SectioningConfig(embedding_max_chars=10_000)).split_for_embedding(section)

    parts = list(head.iter_parts())
    assert len(head.follow_up_parts) == 5
    assert head.total_parts == 6
    assert [part.path for part in parts] == [f"3.{number}" for number in range(1, 7)]
    assert [part.section_id for part in parts] == [
        f"section_mat1_2_embedpart{number}" for number in range(1, 7)
    ]
    assert parts[0].title == "3 Softver (Part 1/6)"
    assert parts[-1].title == "3 Softver (Part 6/6)"
    assert "".join(part.content for part in parts) == content
    assert all(len(part.content) <= 10_000 for part in parts)
    for part in parts:
        offset = part.char_start - section.char_start
        assert content[offset : offset + len(part.content)] == part.content
        assert part.char_end - part.char_start == len(part.content)
    assert all(part.follow_up_parts == () for part in parts)


def test_cut_prefers_paragraph_breaks(make_section) -> None:
    paragraph = "a" * 998
    content = "\n\n".join([paragraph] * 30)
    section = make_section(content)

    head = PartSplitter(SectioningConfig(embedding_max_chars=10_000)).split_for_embedding(section)

    parts = list(head.iter_parts())
    assert len(parts) > 1
    assert "".join(part.content for part in parts) == content
    assert all(len(part.content) <= 10_000 for part in parts)
    assert parts[1].content.endswith("\n\n")


def test_paragraph_break_on_the_ceiling_keeps_the_full_window(make_section) -> None:
    content = "a" * 80 + "." + "b" * 17 + "\n\n" + "c" * 50
    section = make_section(content)

    head = PartSplitter(SectioningConfig(embedding_max_chars=100)).split_for_embedding(section)

    parts = list(head.iter_parts())
    assert [len(part.content) for part in parts] == [100, 50]
    assert parts[0].content.endswith("b\n\n")
    assert parts[1].content == "c" * 50


def test_part_count_is_capped(make_section) -> None:
    section = make_section("abcd " * 11_000)
    config = SectioningConfig(embedding_max_chars=10_000, max_embedding_parts=2)

    head = PartSplitter(config).split_for_embedding(section)

    assert head.total_parts == 2


def test_chunks_group_paragraphs_up_to_the_limit(make_section) -> None:
    content = "\n\n".join(["A" * 40, "B" * 40, "C" * 40])
    section = make_section(content)

    chunks = PartSplitter(SectioningConfig(chunk_max_chars=100)).chunk_section(section)

    assert [chunk.content for chunk in chunks] == ["A" * 40 + "\n\n" + "B" * 40, "C" * 40]
    assert [chunk.paragraph_idx for chunk in chunks] == [0, 1]
    assert chunks[0].chunk_id == "chunk_section_mat1_2_0"
    for chunk in chunks:
        offset = chunk.char_start - section.char_start
        assert content[offset : offset + len(chunk.content)] == chunk.content
        assert chunk.char_end - chunk.char_start == len(chunk.content)


def test_oversized_paragraph_is_split_on_word_boundaries(make_section) -> None:
    content = "word " * 100
    section = make_section(content)

    chunks = PartSplitter(SectioningConfig(chunk_max_chars=100)).chunk_section(section)

    assert len(chunks) > 1
    assert all(len(chunk.content) <= 100 for chunk in chunks)
    assert " ".join(chunk.content for chunk in chunks).split() == content.split()


def test_chunk_pages_follow_the_layout(make_section) -> None:
    pages = [PageText(page_number=4, text="A" * 60), PageText(page_number=5, text="B" * 60)]
    layout = DocumentLayout(pages)
    content = "A" * 60 + "\n\n" + "B" * 60
    section = make_section(content, char_start=0, char_end=len(content))

    chunks = PartSplitter(SectioningConfig(chunk_max_chars=100)).chunk_section(section, layout)

    assert [chunk.page for chunk in chunks] == [4, 5]


def test_chunk_parts_covers_every_part(make_section) -> None:
    section = make_section("abcd " * 11_000)
    splitter = PartSplitter(SectioningConfig(embedding_max_chars=10_000, chunk_max_chars=2_000))
    head = splitter.split_for_embedding(section)

    chunks = splitter.chunk_parts(head)

    assert {chunk.section_id for chunk in chunks} == {part.section_id for part in head.iter_parts()}
    assert all(len(chunk.content) <= 2_000 for chunk in chunks)
