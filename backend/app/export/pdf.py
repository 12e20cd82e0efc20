from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
import logging
from pathlib import Path
import re
from typing import Literal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen.canvas import Canvas

from app.export.markdown import render_markdown
from app.export.policy import unescape_markdown
from app.export.schema import ArtifactKind, CanonicalDocument, PRDDocument

logger = logging.getLogger("prdforge.export")

BlockKind = Literal["heading", "paragraph", "bullet", "code"]
FontRole = Literal["regular", "bold", "oblique", "bold_oblique", "mono"]

PAGE_SIZES: dict[str, tuple[float, float]] = {"A4": A4, "LETTER": LETTER}

_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_BULLET_PATTERN = re.compile(r"^(\s*)[-*+]\s+(.*)$")
_FENCE_PATTERN = re.compile(r"^\s*(`{3,})")
_EMPHASIS_MARKER = re.compile(r"(?<!\\)(\*\*|\*|_)")

BULLET_GLYPH = "•"
FOOTER_FONT_SIZE = 8.0


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str
    level: int = 0


@dataclass(frozen=True)
class FontSet:
    """Font names per role. Without an embedded TrueType font the base-14 fonts are used."""

    regular: str = "Helvetica"
    bold: str = "Helvetica-Bold"
    oblique: str = "Helvetica-Oblique"
    bold_oblique: str = "Helvetica-BoldOblique"
    mono: str = "Courier"
    unicode: bool = False

    def name(self, role: FontRole) -> str:
        return getattr(self, role)

    def text(self, value: str) -> str:
        if self.unicode:
            return value
        # The base-14 fonts only cover WinAnsi; anything else becomes "?".
        return value.encode("cp1252", errors="replace").decode("cp1252")


BASE_FONTS = FontSet()


def _register_ttf(path: str) -> str | None:
    font_file = Path(path)
    if not font_file.is_file():
        logger.warning("pdf_font_missing", extra={"event": "pdf_font_missing", "font_path": path})
        return None
    name = f"PRDForge-{font_file.stem}"
    if name in pdfmetrics.getRegisteredFontNames():
        return name
    try:
        pdfmetrics.registerFont(TTFont(name, str(font_file)))
    except (TTFError, OSError) as exc:
        logger.warning(
            "pdf_font_unusable",
            extra={"event": "pdf_font_unusable", "font_path": path, "error": str(exc)},
        )
        return None
    logger.info("pdf_font_registered", extra={"event": "pdf_font_registered", "font": name})
    return name


def load_font_set(
    regular_path: str | None = None,
    *,
    bold_path: str | None = None,
    mono_path: str | None = None,
) -> FontSet:
    """Register TrueType fonts for full Unicode output, falling back to the base-14 fonts."""
    if not regular_path:
        return BASE_FONTS
    regular = _register_ttf(regular_path)
    if regular is None:
        return BASE_FONTS
    bold = (_register_ttf(bold_path) if bold_path else None) or regular
    mono = (_register_ttf(mono_path) if mono_path else None) or regular
    return FontSet(
        regular=regular,
        bold=bold,
        oblique=regular,
        bold_oblique=bold,
        mono=mono,
        unicode=True,
    )


@dataclass(frozen=True)
class _Style:
    role: FontRole
    size: float
    leading: float
    space_before: float
    space_after: float
    color: colors.Color = colors.black


_BODY = _Style("regular", 10.5, 14.0, 2.0, 4.0)
_CODE = _Style("mono", 9.0, 11.5, 4.0, 6.0, colors.HexColor("#1F2937"))
_HEADINGS: dict[int, _Style] = {
    1: _Style("bold", 17.0, 21.0, 10.0, 6.0, colors.HexColor("#111827")),
    2: _Style("bold", 14.0, 18.0, 12.0, 4.0, colors.HexColor("#1F2937")),
    3: _Style("bold", 12.0, 15.0, 8.0, 3.0, colors.HexColor("#374151")),
    4: _Style("bold", 11.0, 14.0, 6.0, 2.0, colors.HexColor("#374151")),
    5: _Style("bold_oblique", 10.5, 14.0, 5.0, 2.0, colors.HexColor("#4B5563")),
    6: _Style("oblique", 10.5, 14.0, 4.0, 2.0, colors.HexColor("#4B5563")),
}
_TITLE = _Style("bold", 20.0, 24.0, 0.0, 10.0, colors.HexColor("#111827"))
_BULLET_INDENT = 14.0


def parse_markdown_blocks(markdown: str) -> list[Block]:
    """Split Markdown into headings, paragraphs, bullet items and code blocks."""
    blocks: list[Block] = []
    paragraph: list[str] = []
    code_lines: list[str] = []
    fence: str | None = None

    def flush_paragraph() -> None:
        if paragraph:
            blocks.append(Block("paragraph", _display_text(" ".join(paragraph))))
            paragraph.clear()

    for line in markdown.splitlines():
        if fence is not None:
            stripped = line.strip()
            if stripped.startswith(fence) and set(stripped) == {"`"}:
                blocks.append(Block("code", "\n".join(code_lines)))
                code_lines.clear()
                fence = None
            else:
                code_lines.append(line)
            continue

        fence_match = _FENCE_PATTERN.match(line)
        if fence_match:
            flush_paragraph()
            fence = fence_match.group(1)
            continue

        if not line.strip():
            flush_paragraph()
            continue

        heading_match = _HEADING_PATTERN.match(line)
        if heading_match:
            flush_paragraph()
            blocks.append(Block("heading", _display_text(heading_match.group(2)), len(heading_match.group(1))))
            continue

        bullet_match = _BULLET_PATTERN.match(line)
        if bullet_match:
            flush_paragraph()
            depth = len(bullet_match.group(1).expandtabs(2)) // 2
            blocks.append(Block("bullet", _display_text(bullet_match.group(2)), depth))
            continue

        paragraph.append(line.strip())

    flush_paragraph()
    if fence is not None and code_lines:
        blocks.append(Block("code", "\n".join(code_lines)))
    return blocks


def wrap_text(text: str, font: str, size: float, width: float) -> list[str]:
    """Greedy word wrap by measured width; over-long words are split by character."""
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if stringWidth(candidate, font, size) <= width:
            current = candidate
            continue
        if current:
            lines.append(current)
            current = ""
        if stringWidth(word, font, size) <= width:
            current = word
            continue
        pieces = _split_long_token(word, font, size, width)
        lines.extend(pieces[:-1])
        current = pieces[-1]
    if current:
        lines.append(current)
    return lines


def _wrap_code_line(line: str, font: str, size: float, width: float) -> list[str]:
    if not line:
        return [""]
    if stringWidth(line, font, size) <= width:
        return [line]
    return _split_long_token(line, font, size, width)


def _split_long_token(token: str, font: str, size: float, width: float) -> list[str]:
    pieces: list[str] = []
    current = ""
    for char in token:
        if current and stringWidth(current + char, font, size) > width:
            pieces.append(current)
            current = char
        else:
            current += char
    pieces.append(current)
    return pieces


def _display_text(markdown_text: str) -> str:
    return unescape_markdown(_EMPHASIS_MARKER.sub("", markdown_text))


class _PageLayout:
    def __init__(
        self,
        canvas: Canvas,
        page_size: tuple[float, float],
        margin: float,
        fonts: FontSet = BASE_FONTS,
    ) -> None:
        self.canvas = canvas
        self.fonts = fonts
        self.page_width, self.page_height = page_size
        self.margin = margin
        self.top = self.page_height - margin
        self.bottom = margin + FOOTER_FONT_SIZE * 2
        self.text_width = self.page_width - 2 * margin
        self.page_number = 1
        self.y = self.top

    def _font(self, style: _Style) -> str:
        return self.fonts.name(style.role)

    @property
    def at_page_top(self) -> bool:
        return self.y >= self.top

    @property
    def usable_height(self) -> float:
        return self.top - self.bottom

    def remaining(self) -> float:
        return self.y - self.bottom

    def new_page(self) -> None:
        self._draw_footer()
        self.canvas.showPage()
        self.page_number += 1
        self.y = self.top

    def finish(self) -> None:
        self._draw_footer()
        self.canvas.save()

    def draw_title(self, title: str) -> None:
        lines = wrap_text(title, self._font(_TITLE), _TITLE.size, self.text_width) or [""]
        self._draw_lines(lines, _TITLE, x=self.margin)
        self.y -= 4.0
        self.canvas.setStrokeColor(colors.HexColor("#D1D5DB"))
        self.canvas.setLineWidth(0.8)
        self.canvas.line(self.margin, self.y, self.page_width - self.margin, self.y)
        self.y -= _TITLE.space_after

    def place(self, block: Block, next_block: Block | None) -> None:
        if block.kind == "heading":
            self._place_heading(block, next_block)
        elif block.kind == "bullet":
            self._place_bullet(block)
        elif block.kind == "code":
            style = _CODE
            lines: list[str] = []
            for raw_line in block.text.split("\n"):
                lines.extend(_wrap_code_line(raw_line, self._font(style), style.size, self.text_width - 8.0))
            self._place_lines(lines, style, x=self.margin + 8.0)
        else:
            lines = wrap_text(block.text, self._font(_BODY), _BODY.size, self.text_width)
            self._place_lines(lines, _BODY, x=self.margin)

    def _place_heading(self, block: Block, next_block: Block | None) -> None:
        style = _HEADINGS.get(block.level, _HEADINGS[6])
        lines = wrap_text(block.text, self._font(style), style.size, self.text_width) or [""]
        # Keep the heading together with the first line of whatever follows it.
        follow = _first_line_height(next_block)
        needed = style.space_before + len(lines) * style.leading + style.space_after + follow
        if needed > self.remaining() and not self.at_page_top:
            self.new_page()
        if not self.at_page_top:
            self.y -= style.space_before
        self._draw_lines(lines, style, x=self.margin)
        self.y -= style.space_after

    def _place_bullet(self, block: Block) -> None:
        style = _BODY
        indent = _BULLET_INDENT * (block.level + 1)
        text_x = self.margin + indent
        lines = wrap_text(block.text, self._font(style), style.size, self.text_width - indent) or [""]
        self._place_lines(lines, style, x=text_x, bullet_x=text_x - 9.0, space_before=0.0, space_after=2.0)

    def _place_lines(
        self,
        lines: list[str],
        style: _Style,
        *,
        x: float,
        bullet_x: float | None = None,
        space_before: float | None = None,
        space_after: float | None = None,
    ) -> None:
        before = style.space_before if space_before is None else space_before
        after = style.space_after if space_after is None else space_after
        if not lines:
            return
        block_height = before + len(lines) * style.leading
        if block_height > self.remaining() and not self.at_page_top and block_height <= self.usable_height:
            # Move the whole block to the next page instead of splitting it.
            self.new_page()
        if not self.at_page_top:
            self.y -= before
        self._draw_lines(lines, style, x=x, bullet_x=bullet_x)
        self.y -= after

    def _draw_lines(self, lines: list[str], style: _Style, *, x: float, bullet_x: float | None = None) -> None:
        for index, line in enumerate(lines):
            if self.y - style.leading < self.bottom:
                # Only blocks taller than a page get here; they continue on the very next page.
                self.new_page()
            self.y -= style.leading
            baseline = self.y + (style.leading - style.size) / 2
            self.canvas.setFillColor(style.color)
            self.canvas.setFont(self._font(style), style.size)
            if bullet_x is not None and index == 0:
                self.canvas.drawString(bullet_x, baseline, BULLET_GLYPH)
            self.canvas.drawString(x, baseline, self.fonts.text(line))

    def _draw_footer(self) -> None:
        self.canvas.setFont(self.fonts.regular, FOOTER_FONT_SIZE)
        self.canvas.setFillColor(colors.HexColor("#6B7280"))
        self.canvas.drawRightString(
            self.page_width - self.margin,
            self.margin / 2,
            f"Page {self.page_number}",
        )


def _first_line_height(block: Block | None) -> float:
    if block is None:
        return 0.0
    if block.kind == "heading":
        return _HEADINGS.get(block.level, _HEADINGS[6]).leading
    if block.kind == "code":
        return _CODE.space_before + _CODE.leading
    return _BODY.space_before + _BODY.leading


def render_pdf(
    source: str | CanonicalDocument | None,
    header: str,
    *,
    page_size: str = "A4",
    margin: float = 56.0,
    fonts: FontSet | None = None,
) -> bytes:
    """Render Markdown (or a canonical document) into a paginated PDF.

    Empty input still yields a valid single-page document holding the header.
    Pass a ``FontSet`` from ``load_font_set`` to keep characters outside
    WinAnsi; the base-14 fonts replace them with ``?``.
    """
    fonts = fonts or BASE_FONTS
    if source is None:
        markdown = ""
    elif isinstance(source, str):
        markdown = source
    else:
        kind = ArtifactKind.PRD if isinstance(source, PRDDocument) else ArtifactKind.PLAN
        markdown = render_markdown(source, kind)

    size = PAGE_SIZES.get(page_size.upper(), A4)
    buffer = BytesIO()
    canvas = Canvas(buffer, pagesize=size, invariant=True, pageCompression=1)
    canvas.setTitle(fonts.text(header))
    canvas.setCreator("PRD Forge")

    layout = _PageLayout(canvas, size, margin, fonts)
    layout.draw_title(fonts.text(header))

    blocks = parse_markdown_blocks(markdown)
    for index, block in enumerate(blocks):
        next_block = blocks[index + 1] if index + 1 < len(blocks) else None
        layout.place(block, next_block)

    layout.finish()
    return buffer.getvalue()
