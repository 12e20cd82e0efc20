from io import BytesIO
import logging
from pathlib import Path

from pypdf import PdfReader
import reportlab

from app.export import BASE_FONTS, ArtifactKind, load_font_set, normalize_artifact, render_markdown, render_pdf
from app.export.pdf import parse_markdown_blocks, wrap_text


def _page_texts(pdf_bytes: bytes) -> list[str]:
    reader = PdfReader(BytesIO(pdf_bytes))
    return [page.extract_text() or "" for page in reader.pages]


def test_empty_input_yields_single_header_page() -> None:
    pdf_bytes = render_pdf(None, "Empty Project - PRD")

    assert pdf_bytes.startswith(b"%PDF-")
    pages = _page_texts(pdf_bytes)
    assert len(pages) == 1
    assert "Empty Project - PRD" in pages[0]
    assert "Page 1" in pages[0]


def test_long_document_paginates_without_splitting_items(prd_content) -> None:
    prd_content["objectives"] = [f"M{index:03d}X objective text" for index in range(120)]
    markdown = render_markdown(normalize_artifact(prd_content, ArtifactKind.PRD).document, ArtifactKind.PRD)

    pages = _page_texts(render_pdf(markdown, "Task Manager - PRD"))

    assert len(pages) > 1
    page_of_marker: list[int] = []
    for index in range(120):
        marker = f"M{index:03d}X"
        holding = [number for number, text in enumerate(pages) if marker in text]
        assert len(holding) == 1, marker
        page_of_marker.append(holding[0])
    assert page_of_marker == sorted(page_of_marker)


def test_block_taller_than_a_page_continues_on_next_page() -> None:
    words = " ".join(["filler"] * 1500)
    markdown = f"# Oversized\n\n- START {words} FINISH\n"

    pages = _page_texts(render_pdf(markdown, "Oversized - PRD"))

    start_page = next(number for number, text in enumerate(pages) if "START" in text)
    finish_page = next(number for number, text in enumerate(pages) if "FINISH" in text)
    assert finish_page > start_page
    for number in range(start_page, finish_page + 1):
        assert "filler" in pages[number]


def test_escaped_markdown_renders_literally() -> None:
    pages = _page_texts(render_pdf("- 100% \\*critical\\* and **bold**\n", "Escapes - PRD"))

    assert "100% *critical* and bold" in pages[0]


def test_canonical_document_is_accepted_directly(plan_content) -> None:
    document = normalize_artifact(plan_content, ArtifactKind.PLAN).document

    pages = _page_texts(render_pdf(document, "Task Manager - Implementation Plan", page_size="letter"))

    text = "\n".join(pages)
    assert "Project Setup" in text
    assert "mkdir app" in text


def test_rendering_is_byte_stable(prd_content) -> None:
    markdown = render_markdown(normalize_artifact(prd_content, ArtifactKind.PRD).document, ArtifactKind.PRD)

    assert render_pdf(markdown, "Task Manager - PRD") == render_pdf(markdown, "Task Manager - PRD")


def test_parse_markdown_blocks_recognizes_block_kinds() -> None:
    blocks = parse_markdown_blocks("# Title\n\nSome _None specified._ text\n\n  - nested item\n\n```\ncode line\n```\n")

    assert [(block.kind, block.level) for block in blocks] == [
        ("heading", 1),
        ("paragraph", 0),
        ("bullet", 1),
        ("code", 0),
    ]
    assert blocks[1].text == "Some None specified. text"
    assert blocks[3].text == "code line"


def test_wrap_text_splits_words_wider_than_the_line() -> None:
    lines = wrap_text("a " + "x" * 200, "Helvetica", 10.0, 100.0)

    assert lines[0] == "a"
    assert len(lines) > 2
    assert "".join(lines[1:]) == "x" * 200


def _vera_path(name: str = "Vera.ttf") -> str:
    return str(Path(reportlab.__file__).parent / "fonts" / name)


def test_base_fonts_replace_characters_outside_winansi() -> None:
    pages = _page_texts(render_pdf("x ≠ y\n", "Symbols - PRD"))

    assert "x ? y" in pages[0]


def test_truetype_font_set_keeps_unicode_text() -> None:
    fonts = load_font_set(_vera_path(), bold_path=_vera_path("VeraBd.ttf"), mono_path=_vera_path())

    assert fonts.unicode
    assert fonts.regular != fonts.bold
    pages = _page_texts(render_pdf("x ≠ y\n\n```\na ≠ b\n```\n", "Symbols ≠ - PRD", fonts=fonts))

    assert "x ≠ y" in pages[0]
    assert "a ≠ b" in pages[0]
    assert "Symbols ≠ - PRD" in pages[0]


def test_missing_font_file_falls_back_to_base_fonts(tmp_path: Path, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="prdforge.export"):
        fonts = load_font_set(str(tmp_path / "absent.ttf"))

    assert fonts == BASE_FONTS
    assert any(getattr(record, "event", None) == "pdf_font_missing" for record in caplog.records)


def test_unusable_optional_font_reuses_regular_face(tmp_path: Path) -> None:
    broken = tmp_path / "broken.ttf"
    broken.write_bytes(b"not a font")

    fonts = load_font_set(_vera_path(), bold_path=str(broken))

    assert fonts.unicode
    assert fonts.bold == fonts.regular
    assert fonts.mono == fonts.regular
