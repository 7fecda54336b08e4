"""Pytest configuration and fixtures."""

import fitz  # PyMuPDF
import pytest

from docstruct.config import Settings
from docstruct.models import (
    BoundingBox,
    GraphicsPrimitive,
    PageInput,
    PrimitiveKind,
    Word,
)

# Approximate advance width of one character, as a fraction of font size
CHAR_WIDTH = 0.5


class PageBuilder:
    """Builds PageInput fixtures from words placed by position."""

    def __init__(self, page_number: int = 1, width: float = 612.0, height: float = 792.0):
        self.page_number = page_number
        self.width = width
        self.height = height
        self.words: list[Word] = []
        self.primitives: list[GraphicsPrimitive] = []

    def word(
        self,
        text: str,
        x0: float,
        y0: float,
        size: float = 10.0,
        font: str = "Helvetica",
        x1: float = None,
    ) -> Word:
        """Add one word; its width follows its length unless x1 is given."""
        word = Word(
            text=text,
            bbox=BoundingBox(
                x0=x0,
                y0=y0,
                x1=x1 if x1 is not None else x0 + len(text) * size * CHAR_WIDTH,
                y1=y0 + size,
            ),
            font_name=font,
            font_size=size,
            index=len(self.words),
        )
        self.words.append(word)
        return word

    def line(
        self,
        text: str,
        x0: float,
        y0: float,
        size: float = 10.0,
        font: str = "Helvetica",
    ) -> list[Word]:
        """Add a line of space-separated words."""
        words = []
        x = x0
        for token in text.split():
            word = self.word(token, x, y0, size=size, font=font)
            words.append(word)
            x = word.bbox.x1 + size * CHAR_WIDTH
        return words

    def hline(self, x0: float, x1: float, y: float) -> None:
        self.primitives.append(
            GraphicsPrimitive(kind=PrimitiveKind.HORIZONTAL, x0=x0, y0=y, x1=x1, y1=y)
        )

    def vline(self, x: float, y0: float, y1: float) -> None:
        self.primitives.append(
            GraphicsPrimitive(kind=PrimitiveKind.VERTICAL, x0=x, y0=y0, x1=x, y1=y1)
        )

    def rect(self, x0: float, y0: float, x1: float, y1: float) -> None:
        self.primitives.append(
            GraphicsPrimitive(kind=PrimitiveKind.RECTANGLE, x0=x0, y0=y0, x1=x1, y1=y1)
        )

    def build(self) -> PageInput:
        return PageInput(
            page_number=self.page_number,
            width=self.width,
            height=self.height,
            words=list(self.words),
            primitives=list(self.primitives),
        )


@pytest.fixture
def config():
    """Default thresholds, independent of the environment."""
    return Settings(_env_file=None)


@pytest.fixture
def page_builder():
    """Factory for PageBuilder instances."""
    return PageBuilder


@pytest.fixture
def make_word():
    """Factory for standalone words."""

    def _make(
        text: str = "word",
        x0: float = 0.0,
        y0: float = 0.0,
        x1: float = None,
        y1: float = None,
        size: float = 10.0,
        font: str = "Helvetica",
        index: int = 0,
    ) -> Word:
        return Word(
            text=text,
            bbox=BoundingBox(
                x0=x0,
                y0=y0,
                x1=x1 if x1 is not None else x0 + len(text) * size * CHAR_WIDTH,
                y1=y1 if y1 is not None else y0 + size,
            ),
            font_name=font,
            font_size=size,
            index=index,
        )

    return _make


@pytest.fixture
def revenue_page(page_builder):
    """Ruled 2x4 table: two horizontal and four vertical rules, header row filled."""
    page = page_builder()
    page.hline(0, 400, 0)
    page.hline(0, 400, 40)
    for x in (0, 100, 200, 300):
        page.vline(x, 0, 80)
    page.word("Revenue", 10, 5, x1=60)
    page.word("Q1", 110, 5, x1=130)
    page.word("Q2", 210, 5, x1=230)
    page.word("Q3", 310, 5, x1=330)
    return page


@pytest.fixture
def sample_pdf(tmp_path):
    """Two-page PDF: a title, body lines and a rule, then a body-only page."""
    pdf_path = tmp_path / "sample.pdf"
    doc = fitz.open()

    page = doc.new_page()
    page.insert_text((72, 80), "Report", fontsize=20)
    body = [
        "Quarterly figures improved across every region this year",
        "with the strongest growth in the northern and western",
        "markets, driven by new contracts signed in the spring.",
    ]
    for i, text in enumerate(body):
        page.insert_text((72, 120 + i * 14), text, fontsize=11)
    page.draw_line((72, 220), (500, 220))

    page = doc.new_page()
    page.insert_text((72, 80), "Further notes on the figures appear in the appendix.", fontsize=11)

    doc.save(str(pdf_path))
    doc.close()
    return pdf_path
