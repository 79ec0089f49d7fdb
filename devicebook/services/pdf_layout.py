"""Cursor-based page layout on top of an fpdf2 canvas.

``PdfWriter`` draws label/value rows, pre-wrapped blocks, rules and a footer
that repeats on every page. All drawing goes through :meth:`PdfWriter.ensure_space`,
the only place that starts a new page. Wrapped values are space-checked line by
line so a long value may continue on the next page, but a label always shares
its page and baseline with the first line of its value.

Coordinates are millimetres on A4; ``y`` is the text baseline.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from fpdf import FPDF

LOGGER = logging.getLogger(__name__)

MARGIN_LEFT = 25.0
MARGIN_RIGHT = 25.0
MARGIN_TOP = 25.0
LABEL_X = MARGIN_LEFT
VALUE_X = 85.0
PAGE_BOTTOM = 270.0  # content stops here, leaving room for the footer
FOOTER_Y = 280.0
LINE_HEIGHT = 5.0  # for 10 pt text
LINE_HEIGHT_FACTOR = 0.4  # mm of line height per pt of font size
ROW_SPACING = 2.0
BLOCK_SPACING = 3.0
SEPARATOR_SPACE = 10.0

LABEL_COLOR = (100, 100, 100)
VALUE_COLOR = (30, 30, 30)
RULE_COLOR = (200, 200, 200)
FOOTER_COLOR = (150, 150, 150)

CORE_FONT_FAMILY = "helvetica"
TTF_FONT_FAMILY = "DejaVu"
CORE_FONT_ENCODING = "windows-1252"
TTF_FONT_FILES = {
    "": "DejaVuSans.ttf",
    "B": "DejaVuSans-Bold.ttf",
}

Color = Tuple[int, int, int]


def to_code_page(text: str, encoding: str = CORE_FONT_ENCODING) -> str:
    """Make ``text`` drawable with a core font.

    Characters outside ``encoding`` are replaced by their unaccented base
    letter where Unicode defines one (``Ș`` becomes ``S``), otherwise by ``?``.
    """

    chars = []
    for char in str(text):
        try:
            char.encode(encoding)
        except UnicodeEncodeError:
            base = unicodedata.normalize("NFKD", char)[:1]
            try:
                base.encode(encoding)
            except UnicodeEncodeError:
                base = ""
            char = base if base and not unicodedata.combining(base) else "?"
        chars.append(char)
    return "".join(chars)


def configure_fonts(pdf: FPDF, font_dir: Optional[Path] = None) -> str:
    """Register the document font and return its family name.

    With ``font_dir`` the DejaVu TrueType fonts are embedded; otherwise the
    built-in Helvetica is used with the Windows-1252 encoding, which covers
    German umlauts, the euro sign and the bullet.
    """

    if font_dir is None:
        pdf.core_fonts_encoding = CORE_FONT_ENCODING
        return CORE_FONT_FAMILY
    for style, filename in TTF_FONT_FILES.items():
        font_key = f"{TTF_FONT_FAMILY.lower()}{style.upper()}"
        if font_key in pdf.fonts:
            continue
        font_file = Path(font_dir) / filename
        if not font_file.exists():
            LOGGER.error("PDF font missing: %s", font_file)
            raise FileNotFoundError(font_file)
        pdf.add_font(TTF_FONT_FAMILY, style=style, fname=str(font_file))
    return TTF_FONT_FAMILY


def new_canvas() -> FPDF:
    pdf = FPDF(unit="mm", format="A4")
    pdf.set_auto_page_break(auto=False)
    pdf.add_page()
    return pdf


@dataclass
class LayoutCursor:
    """Vertical position on the current page plus the pending footer."""

    top: float = MARGIN_TOP
    bottom: float = PAGE_BOTTOM
    y: float = MARGIN_TOP
    page: int = 1
    footer_text: str = ""
    footer_drawn_page: int = 0

    def fits(self, needed: float) -> bool:
        return self.y + needed <= self.bottom

    def advance(self, amount: float) -> None:
        self.y += amount

    def next_page(self) -> None:
        self.page += 1
        self.y = self.top

    @property
    def footer_pending(self) -> bool:
        return bool(self.footer_text) and self.footer_drawn_page != self.page


class PdfWriter:
    """Draws structured rows onto ``pdf`` with automatic pagination."""

    def __init__(self, pdf: FPDF, *, font_family: str = CORE_FONT_FAMILY) -> None:
        self.pdf = pdf
        self.font_family = font_family
        self.cursor = LayoutCursor()
        self.page_width = pdf.w
        self.max_value_width = self.page_width - VALUE_X - MARGIN_RIGHT

    @property
    def y(self) -> float:
        return self.cursor.y

    # ----- primitives -------------------------------------------------

    def _font(self, size: float, bold: bool = False) -> None:
        self.pdf.set_font(self.font_family, "B" if bold else "", size)

    def _color(self, color: Color) -> None:
        self.pdf.set_text_color(*color)

    def _drawable(self, text: str) -> str:
        if self.font_family == CORE_FONT_FAMILY:
            return to_code_page(text)
        return str(text)

    def _draw(self, x: float, text: str) -> None:
        self.pdf.text(x, self.cursor.y, self._drawable(text))

    def advance(self, amount: float) -> None:
        self.cursor.advance(amount)

    def ensure_space(self, needed: float) -> None:
        if self.cursor.fits(needed):
            return
        self.draw_footer()
        self.pdf.add_page()
        self.cursor.next_page()

    def set_footer(self, text: str) -> None:
        self.cursor.footer_text = text or ""

    def draw_footer(self) -> None:
        """Draw the footer on the current page, at most once per page."""

        if not self.cursor.footer_pending:
            return
        self._font(8)
        self._color(FOOTER_COLOR)
        self.pdf.text(LABEL_X, FOOTER_Y, self._drawable(self.cursor.footer_text))
        self.cursor.footer_drawn_page = self.cursor.page

    # ----- text measuring ---------------------------------------------

    def _fit_prefix(self, word: str, width: float) -> int:
        cut = 1
        while cut < len(word) and self.pdf.get_string_width(word[: cut + 1]) <= width:
            cut += 1
        return cut

    def wrap(self, text: str, width: Optional[float] = None) -> List[str]:
        """Greedy word wrap of ``text`` in the current font.

        Explicit newlines start a new line; words wider than ``width`` are
        broken between characters.
        """

        limit = self.max_value_width if width is None else width
        lines: List[str] = []
        for paragraph in self._drawable(text).split("\n"):
            words = paragraph.split()
            if not words:
                lines.append("")
                continue
            current = ""
            for word in words:
                candidate = f"{current} {word}" if current else word
                if self.pdf.get_string_width(candidate) <= limit:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                while self.pdf.get_string_width(word) > limit:
                    cut = self._fit_prefix(word, limit)
                    lines.append(word[:cut])
                    word = word[cut:]
                current = word
            lines.append(current)
        return lines or [""]

    # ----- structured rows --------------------------------------------

    def label_value(
        self,
        label: str,
        value: str,
        *,
        bold: bool = False,
        value_size: float = 10,
        label_size: float = 10,
    ) -> None:
        self._font(value_size, bold)
        lines = self.wrap(value)
        line_h = value_size * LINE_HEIGHT_FACTOR
        total_height = len(lines) * line_h

        # The label is drawn on the baseline of the first value line.
        self.ensure_space(min(total_height, line_h + ROW_SPACING))

        self._font(label_size)
        self._color(LABEL_COLOR)
        self._draw(LABEL_X, label)

        self._font(value_size, bold)
        self._color(VALUE_COLOR)
        for index, line in enumerate(lines):
            if index > 0:
                self.ensure_space(line_h)
                # A page break resets the font state of some viewers; restate it.
                self._font(value_size, bold)
                self._color(VALUE_COLOR)
            self._draw(VALUE_X, line)
            if index < len(lines) - 1:
                self.advance(line_h)

        self.advance(line_h + ROW_SPACING)

    def label_block(self, label: str, values: Sequence[str]) -> None:
        """Label followed by caller-wrapped lines, one value per line."""

        self.ensure_space(LINE_HEIGHT + ROW_SPACING)

        self._font(10)
        self._color(LABEL_COLOR)
        self._draw(LABEL_X, label)

        for value in values:
            self.ensure_space(LINE_HEIGHT)
            self._font(10)
            self._color(VALUE_COLOR)
            self._draw(VALUE_X, value)
            self.advance(LINE_HEIGHT)

        self.advance(BLOCK_SPACING)

    def separator(self) -> None:
        self.ensure_space(SEPARATOR_SPACE)
        self.pdf.set_draw_color(*RULE_COLOR)
        self.pdf.line(LABEL_X, self.cursor.y, self.page_width - MARGIN_RIGHT, self.cursor.y)
        self.advance(SEPARATOR_SPACE)

    def heading(self, text: str, *, size: float = 22, spacing: float = 8) -> None:
        self.ensure_space(size * LINE_HEIGHT_FACTOR)
        self._font(size, bold=True)
        self._color(VALUE_COLOR)
        self._draw(LABEL_X, text)
        self.advance(spacing)

    def caption(self, text: str, *, x: float = LABEL_X, size: float = 10, spacing: float = 0) -> None:
        """A single grey line, used for subtitles and small sub-lines."""

        self.ensure_space(size * LINE_HEIGHT_FACTOR + 1)
        self._font(size)
        self._color(LABEL_COLOR)
        self._draw(x, text)
        self.advance(spacing)

    def sub_line(self, text: str, *, size: float = 9, spacing: float = 8) -> None:
        """Small grey line in the value column under the previous row."""

        self.ensure_space(LINE_HEIGHT)
        self._font(size)
        self._color(LABEL_COLOR)
        self._draw(VALUE_X, text)
        self.advance(spacing)

    def signature_line(self, caption: str, *, width: float = 70) -> None:
        self.ensure_space(20)
        self.pdf.set_draw_color(*RULE_COLOR)
        self.pdf.line(LABEL_X, self.cursor.y, LABEL_X + width, self.cursor.y)
        self.advance(5)
        self._font(9)
        self._color(LABEL_COLOR)
        self._draw(LABEL_X, caption)

    def image(self, data: bytes, *, x: float, y: float, w: float, h: float) -> bool:
        """Place an image; undecodable data is logged and skipped."""

        try:
            self.pdf.image(BytesIO(data), x=x, y=y, w=w, h=h)
        except Exception as exc:  # fpdf2/Pillow raise assorted errors for bad data
            LOGGER.warning("Skipping image that could not be decoded: %s", exc)
            return False
        return True

    # ----- output -----------------------------------------------------

    def finish(self) -> bytes:
        self.draw_footer()
        output = self.pdf.output()
        if isinstance(output, str):
            return output.encode("latin1")
        return bytes(output)


def page_lines(lines: Iterable[str]) -> List[str]:
    """Drop empty entries from an address-style block."""

    return [line for line in lines if line and line.strip()]


__all__ = [
    "FOOTER_Y",
    "LABEL_X",
    "LayoutCursor",
    "PAGE_BOTTOM",
    "PdfWriter",
    "VALUE_X",
    "configure_fonts",
    "new_canvas",
    "page_lines",
    "to_code_page",
]
