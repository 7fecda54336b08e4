"""Tests for table building and assembly."""

import pytest

from docstruct.models import (
    Alignment,
    BoundingBox,
    ElementKind,
    Line,
    Paragraph,
    TableCell,
    TableRow,
    TextRun,
    WarningCode,
    Word,
)
from docstruct.pipeline.converter import DocumentConverter
from docstruct.pipeline.stage_assemble import DocumentAssembler
from docstruct.pipeline.stage_table import TableBuilder


def convert(page, config):
    return DocumentConverter(config=config).convert_pages([page.build()])


def tables_of(result):
    return [e for e in result.elements if e.kind == ElementKind.TABLE]


def numbers_table(page, spans):
    """Three-row ruled table: a label column and a column of given (x0, x1) spans."""
    for y in (0, 20, 40, 60):
        page.hline(0, 200, y)
    for x in (0, 100, 200):
        page.vline(x, 0, 60)
    for row, (x0, x1) in enumerate(spans):
        y = row * 20 + 5
        page.word("a" * (row + 1), 10, y)
        page.word("n" * (row + 1), x0, y, x1=x1)
    return page


class TestRevenueTable:
    """End-to-end: two horizontal and four vertical rules around one text row."""

    def test_two_by_four_grid(self, config, revenue_page):
        result = convert(revenue_page, config)
        (table,) = tables_of(result)

        assert table.num_rows == 2
        assert table.num_cols == 4
        assert [c.text for c in table.get_row(0)] == ["Revenue", "Q1", "Q2", "Q3"]
        assert all(c.is_empty for c in table.get_row(1))

    def test_grid_complete(self, config, revenue_page):
        """Every row/column intersection has exactly one cell."""
        (table,) = tables_of(convert(revenue_page, config))
        positions = sorted((c.row, c.col) for c in table.cells)
        assert positions == [(r, c) for r in range(2) for c in range(4)]

    def test_markdown(self, config, revenue_page):
        (table,) = tables_of(convert(revenue_page, config))
        lines = table.to_markdown().splitlines()
        assert lines[0] == "| Revenue | Q1 | Q2 | Q3 |"
        assert lines[1] == "| --- | --- | --- | --- |"
        assert len(lines) == 3


class TestAbsorption:
    """Tests for absorbing paragraphs below a table."""

    @pytest.fixture
    def filled_page(self, revenue_page):
        revenue_page.word("Sales", 10, 45, x1=40)
        revenue_page.word("10", 110, 45, x1=120)
        revenue_page.word("20", 210, 45, x1=220)
        revenue_page.word("30", 310, 45, x1=320)
        return revenue_page

    def test_close_paragraph_absorbed(self, config, filled_page):
        """A short paragraph 1.2x the font size below the table joins the last row."""
        filled_page.word("note", 10, 92, x1=30)
        result = convert(filled_page, config)

        assert [e.kind for e in result.elements] == [ElementKind.TABLE]
        table = result.elements[0]
        assert table.get_cell(1, 0).segments == ("Sales", "note")
        assert table.get_cell(1, 0).text == "Sales<br>note"

    def test_distant_paragraph_kept(self, config, filled_page):
        """The same paragraph 3x the font size below stays a paragraph."""
        filled_page.word("note", 10, 110, x1=30)
        result = convert(filled_page, config)

        assert [e.kind for e in result.elements] == [ElementKind.TABLE, ElementKind.PARAGRAPH]
        assert result.elements[1].text == "note"

    def test_chained_absorption(self, config, filled_page):
        """Each absorbed paragraph becomes the reference for the next."""
        filled_page.word("first", 10, 92, x1=35)
        filled_page.word("second", 10, 114, x1=40)
        result = convert(filled_page, config)

        table = result.elements[0]
        assert table.get_cell(1, 0).segments == ("Sales", "first", "second")

    def test_paragraph_crossing_column_rule_absorbed(self, config, filled_page):
        """Text straddling a column rule joins the column it overlaps most."""
        filled_page.word("continued", 80, 92, x1=125)
        result = convert(filled_page, config)

        assert [e.kind for e in result.elements] == [ElementKind.TABLE]
        table = result.elements[0]
        assert table.get_cell(1, 1).segments == ("10", "continued")
        assert table.get_cell(1, 0).segments == ("Sales",)

    def test_paragraph_beside_table_kept(self, config, filled_page):
        """Text entirely right of the last column is not cell content."""
        filled_page.word("aside", 450, 92, x1=480)
        result = convert(filled_page, config)

        assert [e.kind for e in result.elements] == [ElementKind.TABLE, ElementKind.PARAGRAPH]
        assert result.elements[1].text == "aside"

    def test_veto_order(self, config):
        builder = TableBuilder(config)
        assert [name for name, _ in builder.absorption_vetoes] == [
            "not_below_table",
            "outside_column_span",
            "exceeds_length_cap",
            "gap_too_large",
        ]

    def test_length_cap(self, config):
        builder = TableBuilder(config)
        word = Word(text="x" * 51, bbox=BoundingBox(x0=0, y0=0, x1=50, y1=10), font_size=10, index=0)
        line = Line(words=(word,), runs=(TextRun(words=(word,)),), bbox=word.bbox, font_size=10, page_number=1, index=0)
        paragraph = Paragraph(id="p1_e0", page_number=1, bbox=word.bbox, lines=(line,))
        assert builder._exceeds_length_cap(paragraph, word.bbox, None)


class TestSpans:
    """Tests for merged cell detection."""

    def test_header_spans_two_columns(self, config, page_builder):
        page = page_builder()
        page.hline(0, 200, 0)
        page.hline(0, 200, 40)
        page.hline(0, 200, 80)
        page.vline(0, 0, 80)
        page.vline(200, 0, 80)
        page.vline(100, 40, 80)
        page.word("Header", 60, 10, x1=90)
        page.word("a", 10, 50)
        page.word("b", 110, 50)
        (table,) = tables_of(convert(page, config))

        header = table.get_cell(0, 0)
        assert header.text == "Header"
        assert header.col_span == 2
        assert table.get_cell(0, 1).is_covered
        assert [c.text for c in table.get_row(1)] == ["a", "b"]

    def test_non_rectangular_merge_demotes(self, config, page_builder):
        page = page_builder()
        page.hline(0, 200, 0)
        page.hline(0, 200, 80)
        page.hline(100, 200, 40)
        page.vline(0, 0, 80)
        page.vline(200, 0, 80)
        page.vline(100, 40, 80)
        page.word("a", 10, 50)
        page.word("b", 110, 50)
        result = convert(page, config)

        assert [e.kind for e in result.elements] == [ElementKind.PARAGRAPH]
        assert result.elements[0].text == "a b"
        assert [w.code for w in result.all_warnings] == [WarningCode.AMBIGUOUS_TABLE]


class TestColumnAlignment:
    """Tests for alignment hints from offset variance."""

    @pytest.mark.parametrize(
        "spans,expected",
        [
            ([(110, 115), (110, 120), (110, 125)], Alignment.LEFT),
            ([(185, 190), (180, 190), (175, 190)], Alignment.RIGHT),
            ([(147.5, 152.5), (142.5, 157.5), (137.5, 162.5)], Alignment.CENTER),
            ([(103, 197), (103, 197), (103, 197)], Alignment.JUSTIFIED),
        ],
    )
    def test_alignment(self, config, page_builder, spans, expected):
        page = numbers_table(page_builder(), spans)
        (table,) = tables_of(convert(page, config))
        assert table.columns[1].alignment == expected

    def test_separator_hints(self, config, page_builder):
        page = numbers_table(page_builder(), [(185, 190), (180, 190), (175, 190)])
        (table,) = tables_of(convert(page, config))
        assert table.to_markdown().splitlines()[1] == "| --- | ---: |"


class TestDocumentAssembler:
    """Tests for collapsing table rows."""

    def test_non_table_elements_pass_through(self):
        word = Word(text="x", bbox=BoundingBox(x0=0, y0=0, x1=5, y1=10), font_size=10, index=0)
        line = Line(words=(word,), runs=(TextRun(words=(word,)),), bbox=word.bbox, font_size=10, page_number=1, index=0)
        paragraph = Paragraph(id="p1_e0", page_number=1, bbox=word.bbox, lines=(line,))
        assert DocumentAssembler().assemble([paragraph]) == [paragraph]

    def test_candidate_rows_numbered_in_order(self):
        """Rows without a grid index are numbered by position."""
        bbox = BoundingBox(x0=0, y0=0, x1=10, y1=10)
        rows = [
            TableRow(
                id=f"r{i}",
                page_number=1,
                bbox=bbox,
                region_id="p1_t0",
                cells=(TableCell(row=5, col=0, segments=(f"v{i}",)),),
            )
            for i in range(2)
        ]
        (table,) = DocumentAssembler().assemble(rows)
        assert table.num_rows == 2
        assert table.num_cols == 1
        assert [c.row for c in table.cells] == [0, 1]
