"""Tests for graphics analysis stage."""

import math

import pytest

from docstruct.models import GraphicsPrimitive, Orientation, PrimitiveKind, WarningCode
from docstruct.pipeline.stage_graphics import GraphicsAnalyzer, group_positions
from docstruct.pipeline.stage_lines import LineAssembler


@pytest.fixture
def analyzer():
    return GraphicsAnalyzer(
        cluster_distance=20.0,
        boundary_tolerance=2.0,
        min_cell_size=4.0,
        rule_thickness=2.0,
    )


def analyze(analyzer, page):
    """Run line assembly and graphics analysis on a PageBuilder."""
    lines = LineAssembler().assemble(page.words, page.page_number)
    return analyzer.analyze(page.primitives, lines, page.page_number)


class TestToSegments:
    """Tests for primitive normalization."""

    def test_thin_rectangle_is_rule(self, analyzer):
        rect = GraphicsPrimitive(kind=PrimitiveKind.RECTANGLE, x0=0, y0=50, x1=200, y1=51)
        segments = analyzer.to_segments(rect)
        assert len(segments) == 1
        assert segments[0].orientation == Orientation.HORIZONTAL
        assert segments[0].position == 50.5

    def test_box_gives_four_edges(self, analyzer):
        rect = GraphicsPrimitive(kind=PrimitiveKind.RECTANGLE, x0=0, y0=0, x1=100, y1=50)
        segments = analyzer.to_segments(rect)
        assert sorted(s.orientation.value for s in segments) == [
            "horizontal", "horizontal", "vertical", "vertical",
        ]

    def test_diagonal_dropped(self, analyzer):
        line = GraphicsPrimitive(kind=PrimitiveKind.HORIZONTAL, x0=0, y0=0, x1=100, y1=80)
        assert analyzer.to_segments(line) == []

    def test_endpoint_order_irrelevant(self, analyzer):
        line = GraphicsPrimitive(kind=PrimitiveKind.VERTICAL, x0=10, y0=90, x1=10, y1=5)
        (segment,) = analyzer.to_segments(line)
        assert (segment.start, segment.end) == (5, 90)


class TestGraphicsAnalyzer:
    """Tests for table region detection."""

    def test_revenue_grid_is_two_by_four(self, analyzer, revenue_page):
        """Two horizontal and four vertical rules, right side open."""
        result = analyze(analyzer, revenue_page)
        assert len(result.regions) == 1
        region = result.regions[0]
        assert region.num_rows == 2
        assert region.num_cols == 4
        assert region.row_boundaries == (0, 40, 80)
        assert region.column_boundaries == (0, 100, 200, 300, 400)

    def test_single_rule_is_hint(self, analyzer, page_builder):
        """One rule cannot make a table."""
        page = page_builder()
        page.line("Some text", 72, 100)
        page.hline(72, 500, 130)
        result = analyze(analyzer, page)
        assert result.regions == ()
        assert len(result.rule_hints) == 1
        assert result.rule_hints[0].orientation == Orientation.HORIZONTAL

    def test_degenerate_grid_rejected(self, analyzer, page_builder):
        """Only one column boundary: not a table."""
        page = page_builder()
        page.word("cell", 10, 10)
        page.hline(0, 100, 0)
        page.hline(0, 100, 30)
        page.vline(0, 0, 30)
        result = analyze(analyzer, page)
        assert result.regions == ()
        assert len(result.rule_hints) == 3

    def test_grid_without_text_is_not_table(self, analyzer, page_builder):
        page = page_builder()
        page.rect(0, 0, 100, 50)
        page.vline(50, 0, 50)
        result = analyze(analyzer, page)
        assert result.regions == ()
        assert len(result.rule_hints) == 5

    def test_distant_clusters_separate(self, analyzer, page_builder):
        """Components further apart than the cluster distance stay apart."""
        page = page_builder()
        page.rect(0, 0, 100, 40)
        page.word("A", 10, 10)
        page.rect(0, 200, 100, 240)
        page.word("B", 10, 210)
        result = analyze(analyzer, page)
        assert [r.id for r in result.regions] == ["p1_t0", "p1_t1"]

    def test_dense_grid_demoted(self, analyzer, page_builder):
        """Boundaries closer than the minimum cell size are ambiguous."""
        page = page_builder()
        page.rect(0, 0, 100, 40)
        page.vline(50, 0, 40)
        page.vline(53, 0, 40)
        page.word("text", 10, 10)
        result = analyze(analyzer, page)
        assert result.regions == ()
        assert len(result.demoted_regions) == 1
        assert result.warnings[0].code == WarningCode.AMBIGUOUS_TABLE

    def test_misaligned_rules_demoted(self, analyzer, page_builder):
        """Column rules outside the row rules' extent are ambiguous."""
        page = page_builder()
        page.hline(0, 100, 0)
        page.hline(0, 100, 40)
        page.vline(0, 0, 40)
        page.vline(115, 0, 40)
        page.word("text", 10, 10)
        result = analyze(analyzer, page)
        assert result.regions == ()
        assert len(result.demoted_regions) == 1

    def test_non_finite_primitive_skipped(self, analyzer, page_builder):
        page = page_builder()
        page.hline(0, math.inf, 10)
        result = analyze(analyzer, page)
        assert result.warnings[0].code == WarningCode.MALFORMED_INPUT
        assert result.rule_hints == ()

    def test_region_lookup_by_centre(self, analyzer, revenue_page):
        result = analyze(analyzer, revenue_page)
        line = LineAssembler().assemble(revenue_page.words, 1)[0]
        assert result.region_for(line.bbox).id == "p1_t0"


class TestGroupPositions:
    """Tests for boundary grouping."""

    def test_chains_within_tolerance(self):
        assert group_positions([10, 0, 1.5, 11], 2.0) == [[0, 1.5], [10, 11]]

    def test_empty(self):
        assert group_positions([], 2.0) == []
