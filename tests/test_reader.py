"""Tests for the reader document assembler and writer."""

from datetime import datetime, timezone

import pytest

from chapter_aggregator.extractor import ExtractedChapter
from chapter_aggregator.output import SingleFileOutput, assemble, content_hash

GENERATED_AT = datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)


def make_chapter(title: str, novel: str = "The Long Road", content: str = "<p>text</p>"):
    return ExtractedChapter(
        novel_title=novel,
        chapter_title=title,
        content_html=content,
        source_url=f"https://novel.example/{title.lower().replace(' ', '-')}",
    )


@pytest.mark.parametrize("text,expected", [("", "0"), ("a", "2p"), ("ab", "2e9")])
def test_content_hash_known_values(text, expected):
    assert content_hash(text) == expected


def test_content_hash_wraps_to_32_bits():
    digest = content_hash("Chapter 1: A very long title that overflows the hash " * 4)

    assert int(digest, 36) <= 2**31


def test_filename_layout():
    chapters = [make_chapter("Chapter 1"), make_chapter("Chapter 2")]

    document = assemble(chapters, GENERATED_AT)

    digest = content_hash("Chapter 1Chapter 2")[:6]
    assert document.filename == f"The_Long_Road_2ch_20240305T140709_{digest}.html"
    assert document.chapter_count == 2
    assert document.novel_title == "The Long Road"


def test_filename_is_deterministic():
    chapters = [make_chapter("Chapter 1"), make_chapter("Chapter 2")]

    assert assemble(chapters, GENERATED_AT).filename == assemble(chapters, GENERATED_AT).filename


def test_filename_sanitizes_unsafe_characters():
    document = assemble([make_chapter("One", novel='What? A "Hero": Part 1/2')], GENERATED_AT)

    assert document.filename.startswith("What__A__Hero___Part_1_2_1ch_")


def test_unknown_novel_fallback():
    document = assemble([make_chapter("One", novel="")], GENERATED_AT)

    assert document.filename.startswith("Unknown_Novel_1ch_")
    assert document.novel_title == "Unknown Novel"


def test_html_has_toc_sections_and_navigation():
    chapters = [make_chapter(f"Chapter {i}") for i in range(1, 4)]

    html = assemble(chapters, GENERATED_AT).html

    assert "<title>The Long Road</title>" in html
    for i in range(1, 4):
        assert f'href="#chapter-{i}"' in html
        assert f'id="chapter-{i}"' in html
    assert "const totalChapters = 3;" in html
    assert "ArrowLeft" in html and "Escape" in html
    positions = [html.index(f'id="chapter-{i}"') for i in range(1, 4)]
    assert positions == sorted(positions)


def test_titles_escaped_content_kept():
    chapter = make_chapter("<b>Bold</b> & more", content="<p><em>kept</em></p>")

    html = assemble([chapter], GENERATED_AT).html

    assert "&lt;b&gt;Bold&lt;/b&gt; &amp; more" in html
    assert "<p><em>kept</em></p>" in html


def test_assemble_requires_chapters():
    with pytest.raises(ValueError):
        assemble([])


@pytest.mark.asyncio
async def test_single_file_output_writes_document(tmp_path):
    document = assemble([make_chapter("Chapter 1")], GENERATED_AT)
    writer = SingleFileOutput(tmp_path / "books")

    path = await writer.write(document)

    assert path == tmp_path / "books" / document.filename
    assert path.read_text(encoding="utf-8") == document.html
