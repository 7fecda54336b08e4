"""Structure Classification Stage - Assign structural roles to lines.

An explicit state machine over LineRole:
1. Each line gets a candidate role from the first matching entry of
   CLASSIFICATION_RULES
2. A one-line lookahead turns indented first lines of paragraphs back
   into paragraph lines
3. TRANSITIONS decides whether a candidate continues the open element
   or starts a new one
4. Wide horizontal rule hints are placed as dividers in reading order

Decisions use geometry and font data, plus marker glyph categories.
The classifier never aborts a page; missing data degrades to paragraphs.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from docstruct.config import Settings, settings
from docstruct.models import (
    BlockQuote,
    BoundingBox,
    CodeBlock,
    ConversionWarning,
    Divider,
    DocumentElement,
    DocumentStatistics,
    FontStatistics,
    GraphicsAnalysis,
    Heading,
    Line,
    ListItem,
    Orientation,
    PageLayout,
    Paragraph,
    RuleHint,
    TableCell,
    TableRow,
    WarningCode,
)
from docstruct.pipeline.stage_fonts import is_monospace
from docstruct.pipeline.stage_graphics import group_positions

logger = logging.getLogger(__name__)

# Numeral followed by "." or ")", not the start of a decimal number
ORDERED_MARKER = re.compile(r"^(\d{1,3})[.)](?!\d)")

# Bullet glyphs; dash-like glyphs only count as a word on their own
BULLET_MARKER = re.compile(
    "^[•‣⁃∙▪▫●○■□◦➢]"
    "|^[-*–·]$"
)

# Dividers must span at least this share of the body column
DIVIDER_MIN_WIDTH_RATIO = 0.5


class LineRole(str, Enum):
    """States of the classification machine."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST_ITEM = "list_item"
    BLOCK_QUOTE = "block_quote"
    TABLE_ROW = "table_row"
    CODE_BLOCK = "code_block"


@dataclass
class Candidate:
    """Role proposed for a single line."""

    role: LineRole
    line: Line
    rule: str
    level: Optional[int] = None
    depth: int = 0
    ordinal: Optional[int] = None
    marker: str = ""
    region_id: Optional[str] = None
    cells: tuple[TableCell, ...] = ()
    quote_bar: bool = False
    starts_block: bool = False
    warning: Optional[ConversionWarning] = None


@dataclass
class PageContext:
    """Page-level facts the rules and transitions read."""

    page_number: int
    fonts: FontStatistics
    indent_unit: Optional[float]
    dominant_margin: float
    body_width: float
    graphics: GraphicsAnalysis
    config: Settings

    def offset(self, line: Line) -> float:
        """Distance of the line's left edge from the dominant margin."""
        return line.bbox.x0 - self.dominant_margin

    def depth_for(self, offset: float) -> int:
        if not self.indent_unit:
            return 0
        return max(0, round(offset / self.indent_unit))

    def region_id(self, line: Line) -> Optional[str]:
        region = self.graphics.region_for(line.bbox)
        return region.id if region else None

    def in_demoted_region(self, box: BoundingBox) -> bool:
        return any(d.contains_point(box.center_x, box.center_y) for d in self.graphics.demoted_regions)


@dataclass
class _OpenElement:
    """Element being accumulated by the state machine."""

    candidate: Candidate
    region_id: Optional[str]
    lines: list[Line] = field(default_factory=list)

    @property
    def role(self) -> LineRole:
        return self.candidate.role

    @property
    def last_line(self) -> Line:
        return self.lines[-1]


def dominant_margin(lines: Iterable[Line], tolerance: float) -> float:
    """Most common left edge; ties go to the leftmost margin."""
    groups = group_positions([line.bbox.x0 for line in lines], tolerance)
    if not groups:
        return 0.0
    best = max(groups, key=lambda g: (len(g), -g[0]))
    return best[0]


def compute_indent_unit(
    pages: Iterable[list[Line]],
    tolerance: Optional[float] = None,
) -> Optional[float]:
    """Smallest recurring step between left-margin clusters.

    Margins are clusters of line x0 holding at least two lines on a page;
    steps are the deltas between adjacent margins. A step found at least
    twice across the document wins over smaller one-off steps.

    Args:
        pages: Non-table lines, one list per page.
        tolerance: Margin tolerance (default from settings).

    Returns:
        The indent unit, or None when nothing is indented.
    """
    tolerance = tolerance or settings.margin_tolerance
    deltas: list[float] = []
    for lines in pages:
        groups = group_positions([line.bbox.x0 for line in lines], tolerance)
        margins = [g[0] for g in groups if len(g) >= 2]
        deltas.extend(b - a for a, b in zip(margins, margins[1:]) if b - a >= tolerance)

    if not deltas:
        return None

    steps = group_positions(deltas, tolerance)
    recurring = [s for s in steps if len(s) >= 2]
    chosen = (recurring or steps)[0]
    return sum(chosen) / len(chosen)


def body_column_width(lines: list[Line], fonts: FontStatistics) -> Optional[float]:
    """Horizontal extent of the body-size lines; None when there are none."""
    body_lines = [
        line
        for line in lines
        if fonts.is_available
        and (cluster := fonts.cluster_for(line.font_size)) is not None
        and cluster.size == fonts.body_size
    ]
    if not body_lines:
        return None
    return max(line.bbox.x1 for line in body_lines) - min(line.bbox.x0 for line in body_lines)


# --- Classification rules, tried in order ---


def _rule_statistics_unavailable(line: Line, ctx: PageContext) -> Optional[Candidate]:
    if not ctx.fonts.is_available:
        return Candidate(LineRole.PARAGRAPH, line, "statistics_unavailable")
    return None


def _rule_missing_font_data(line: Line, ctx: PageContext) -> Optional[Candidate]:
    if line.has_font_data:
        return None
    warning = ConversionWarning(
        code=WarningCode.MISSING_FONT_DATA,
        message=f"Line {line.index} has no font size; classified as paragraph",
        page_number=ctx.page_number,
        detail={"line_index": line.index},
    )
    return Candidate(LineRole.PARAGRAPH, line, "missing_font_data", warning=warning)


def _rule_demoted_table(line: Line, ctx: PageContext) -> Optional[Candidate]:
    if ctx.in_demoted_region(line.bbox):
        return Candidate(LineRole.PARAGRAPH, line, "demoted_table")
    return None


def _rule_table_row(line: Line, ctx: PageContext) -> Optional[Candidate]:
    region = next((r for r in ctx.graphics.regions if r.bbox.intersects(line.bbox)), None)
    if region is None:
        return None

    boundaries = region.internal_column_boundaries
    if not any(g0 <= b <= g1 for g0, g1 in line.column_gaps for b in boundaries):
        return None

    row = region.row_at(line.bbox.center_y)
    buckets: dict[int, list] = {col: [] for col in range(region.num_cols)}
    for word in line.words:
        buckets[region.column_at(word.bbox.center_x)].append(word)

    cells = tuple(
        TableCell(
            row=row,
            col=col,
            words=tuple(words),
            segments=(line.text_of({w.index for w in words}),) if words else (),
        )
        for col, words in buckets.items()
    )
    return Candidate(LineRole.TABLE_ROW, line, "table_row", region_id=region.id, cells=cells)


def _rule_code_block(line: Line, ctx: PageContext) -> Optional[Candidate]:
    if is_monospace(line.font_name):
        return Candidate(LineRole.CODE_BLOCK, line, "code_block")
    return None


def _rule_heading(line: Line, ctx: PageContext) -> Optional[Candidate]:
    level = ctx.fonts.level_for(line.font_size)
    if level is None or not line.is_single_run:
        return None
    if line.bbox.width >= ctx.config.heading_max_width_ratio * ctx.body_width:
        return None
    return Candidate(LineRole.HEADING, line, "heading", level=level)


def _rule_list_item(line: Line, ctx: PageContext) -> Optional[Candidate]:
    offset = ctx.offset(line)
    if offset <= ctx.config.margin_tolerance:
        return None

    first = line.words[0].text
    ordered = ORDERED_MARKER.match(first)
    if ordered:
        return Candidate(
            LineRole.LIST_ITEM,
            line,
            "list_item",
            depth=ctx.depth_for(offset),
            ordinal=int(ordered.group(1)),
            marker=ordered.group(0),
        )
    bullet = BULLET_MARKER.match(first)
    if bullet:
        return Candidate(
            LineRole.LIST_ITEM,
            line,
            "list_item",
            depth=ctx.depth_for(offset),
            marker=bullet.group(0),
        )
    return None


def _rule_block_quote(line: Line, ctx: PageContext) -> Optional[Candidate]:
    tol = ctx.config.margin_tolerance
    bars = _quote_bars(line, ctx)
    if bars:
        return Candidate(
            LineRole.BLOCK_QUOTE, line, "block_quote", depth=len(bars), quote_bar=True
        )

    offset = ctx.offset(line)
    if ctx.indent_unit and offset >= ctx.indent_unit - tol:
        return Candidate(
            LineRole.BLOCK_QUOTE, line, "block_quote", depth=max(1, ctx.depth_for(offset))
        )
    return None


def _quote_bars(line: Line, ctx: PageContext) -> list[RuleHint]:
    """Vertical rule hints standing left of the line, nearest one close by."""
    tol = ctx.config.margin_tolerance
    reach = line.size * ctx.config.column_break_factor
    bars = [
        hint
        for hint in ctx.graphics.rule_hints
        if hint.orientation == Orientation.VERTICAL
        and hint.bbox.vertical_overlap(line.bbox) > 0
        and ctx.dominant_margin - tol <= hint.bbox.x1 <= line.bbox.x0 + tol
    ]
    if not any(line.bbox.x0 - hint.bbox.x1 <= reach for hint in bars):
        return []
    return bars


CLASSIFICATION_RULES: list[tuple[str, Callable[[Line, PageContext], Optional[Candidate]]]] = [
    ("statistics_unavailable", _rule_statistics_unavailable),
    ("missing_font_data", _rule_missing_font_data),
    ("demoted_table", _rule_demoted_table),
    ("table_row", _rule_table_row),
    ("code_block", _rule_code_block),
    ("heading", _rule_heading),
    ("list_item", _rule_list_item),
    ("block_quote", _rule_block_quote),
]


# --- Continuation transitions ---


def _gap_allows_merge(state: _OpenElement, candidate: Candidate, ctx: PageContext) -> bool:
    gap = candidate.line.bbox.y0 - state.last_line.bbox.y1
    return gap < ctx.config.paragraph_gap_factor * state.last_line.size


def _continues_paragraph(state: _OpenElement, candidate: Candidate, ctx: PageContext) -> bool:
    return not candidate.starts_block and _gap_allows_merge(state, candidate, ctx)


def _continues_heading(state: _OpenElement, candidate: Candidate, ctx: PageContext) -> bool:
    return candidate.level == state.candidate.level and _gap_allows_merge(state, candidate, ctx)


def _continues_list_item(state: _OpenElement, candidate: Candidate, ctx: PageContext) -> bool:
    if candidate.quote_bar:
        return False
    indented = candidate.line.bbox.x0 > state.lines[0].bbox.x0 + ctx.config.margin_tolerance
    return indented and _gap_allows_merge(state, candidate, ctx)


def _continues_quote(state: _OpenElement, candidate: Candidate, ctx: PageContext) -> bool:
    return candidate.depth == state.candidate.depth and _gap_allows_merge(state, candidate, ctx)


TRANSITIONS: dict[tuple[LineRole, LineRole], Callable[[_OpenElement, Candidate, PageContext], bool]] = {
    (LineRole.PARAGRAPH, LineRole.PARAGRAPH): _continues_paragraph,
    (LineRole.HEADING, LineRole.HEADING): _continues_heading,
    (LineRole.LIST_ITEM, LineRole.PARAGRAPH): _continues_list_item,
    (LineRole.LIST_ITEM, LineRole.BLOCK_QUOTE): _continues_list_item,
    (LineRole.BLOCK_QUOTE, LineRole.BLOCK_QUOTE): _continues_quote,
    (LineRole.CODE_BLOCK, LineRole.CODE_BLOCK): _gap_allows_merge,
}


class StructureClassifier:
    """Classifies a page's lines into document elements."""

    def __init__(self, config: Optional[Settings] = None):
        """Initialize classifier.

        Args:
            config: Thresholds to classify with (default: global settings).
        """
        self.config = config or settings

    def build_context(
        self,
        layout: PageLayout,
        statistics: DocumentStatistics,
    ) -> PageContext:
        """Derive the page-level facts used by rules and transitions."""
        text_lines = layout.text_lines
        return PageContext(
            page_number=layout.page_number,
            fonts=statistics.fonts,
            indent_unit=statistics.indent_unit,
            dominant_margin=dominant_margin(text_lines, self.config.margin_tolerance),
            body_width=(
                body_column_width(text_lines, statistics.fonts)
                or statistics.body_width
                or layout.width
                or 0.0
            ),
            graphics=layout.graphics,
            config=self.config,
        )

    def candidate_for(self, line: Line, ctx: PageContext) -> Candidate:
        """Apply the rules in order; unmatched lines are paragraphs."""
        for _, rule in CLASSIFICATION_RULES:
            candidate = rule(line, ctx)
            if candidate is not None:
                return candidate
        return Candidate(LineRole.PARAGRAPH, line, "paragraph")

    def classify(
        self,
        layout: PageLayout,
        statistics: DocumentStatistics,
    ) -> tuple[list[DocumentElement], list[ConversionWarning]]:
        """Classify one page.

        Args:
            layout: Pass-1 output for the page.
            statistics: Document statistics from pass 1.

        Returns:
            Tuple of (elements in reading order, warnings).
        """
        ctx = self.build_context(layout, statistics)
        candidates = [self.candidate_for(line, ctx) for line in layout.lines]
        candidates = self._apply_lookahead(candidates, ctx)

        warnings = [c.warning for c in candidates if c.warning is not None]
        for warning in warnings:
            logger.warning("Page %d: %s", layout.page_number, warning.message)

        states: list[_OpenElement] = []
        for candidate in candidates:
            region_id = candidate.region_id or ctx.region_id(candidate.line)
            current = states[-1] if states else None
            if current is not None and self._continues(current, candidate, region_id, ctx):
                current.lines.append(candidate.line)
            else:
                states.append(_OpenElement(candidate=candidate, region_id=region_id, lines=[candidate.line]))

        dividers = self._dividers(layout, ctx)
        elements = self._emit(states, dividers, layout.page_number)
        logger.debug(
            "Page %d: %d lines -> %d elements (%d dividers)",
            layout.page_number,
            len(layout.lines),
            len(elements),
            len(dividers),
        )
        return elements, warnings

    def _apply_lookahead(self, candidates: list[Candidate], ctx: PageContext) -> list[Candidate]:
        """Indented line followed closely by a margin-aligned paragraph line is a first-line indent."""
        out = list(candidates)
        for i, candidate in enumerate(candidates[:-1]):
            if candidate.role != LineRole.BLOCK_QUOTE or candidate.quote_bar:
                continue
            following = candidates[i + 1]
            if following.role != LineRole.PARAGRAPH:
                continue
            aligned = abs(ctx.offset(following.line)) <= self.config.margin_tolerance
            gap = following.line.bbox.y0 - candidate.line.bbox.y1
            if aligned and gap < self.config.paragraph_gap_factor * candidate.line.size:
                out[i] = Candidate(
                    LineRole.PARAGRAPH, candidate.line, "first_line_indent", starts_block=True
                )
        return out

    def _continues(
        self,
        state: _OpenElement,
        candidate: Candidate,
        region_id: Optional[str],
        ctx: PageContext,
    ) -> bool:
        if state.region_id != region_id:
            return False
        transition = TRANSITIONS.get((state.role, candidate.role))
        if transition is None:
            return False
        return transition(state, candidate, ctx)

    def _dividers(self, layout: PageLayout, ctx: PageContext) -> list[RuleHint]:
        """Horizontal rule hints that read as thematic breaks."""
        tol = self.config.boundary_tolerance
        accepted: list[RuleHint] = []
        for hint in sorted(layout.graphics.rule_hints, key=lambda h: (h.bbox.y0, h.bbox.x0)):
            if hint.orientation != Orientation.HORIZONTAL:
                continue
            if hint.length < DIVIDER_MIN_WIDTH_RATIO * ctx.body_width:
                continue
            if ctx.graphics.region_for(hint.bbox) or ctx.in_demoted_region(hint.bbox):
                continue
            if any(self._underlines(hint, line) for line in layout.lines):
                continue
            if any(
                abs(hint.bbox.y0 - prev.bbox.y0) <= tol and hint.bbox.horizontal_overlap(prev.bbox) > 0
                for prev in accepted
            ):
                continue
            accepted.append(hint)
        return accepted

    def _underlines(self, hint: RuleHint, line: Line) -> bool:
        if hint.bbox.horizontal_overlap(line.bbox) <= 0:
            return False
        below = hint.bbox.y0 - line.bbox.y1
        return line.bbox.y0 <= hint.bbox.y0 and below <= line.size * self.config.vertical_tolerance_factor

    def _emit(
        self,
        states: list[_OpenElement],
        dividers: list[RuleHint],
        page_number: int,
    ) -> list[DocumentElement]:
        """Build elements in reading order with positional identifiers."""
        elements: list[DocumentElement] = []
        pending = sorted(dividers, key=lambda h: h.bbox.y0)
        for state in states:
            while pending and pending[0].bbox.center_y < state.lines[0].bbox.y0:
                elements.append(self._divider(pending.pop(0), page_number, len(elements)))
            elements.append(self._element(state, page_number, len(elements)))
        for hint in pending:
            elements.append(self._divider(hint, page_number, len(elements)))
        return elements

    def _divider(self, hint: RuleHint, page_number: int, position: int) -> Divider:
        return Divider(id=f"p{page_number}_e{position}", page_number=page_number, bbox=hint.bbox)

    def _element(self, state: _OpenElement, page_number: int, position: int) -> DocumentElement:
        candidate = state.candidate
        common = dict(
            id=f"p{page_number}_e{position}",
            page_number=page_number,
            bbox=BoundingBox.enclosing([line.bbox for line in state.lines]),
            lines=tuple(state.lines),
        )
        if candidate.role == LineRole.HEADING:
            return Heading(level=candidate.level, **common)
        if candidate.role == LineRole.LIST_ITEM:
            return ListItem(
                ordinal=candidate.ordinal,
                depth=candidate.depth,
                marker=candidate.marker,
                **common,
            )
        if candidate.role == LineRole.BLOCK_QUOTE:
            return BlockQuote(depth=candidate.depth, **common)
        if candidate.role == LineRole.CODE_BLOCK:
            return CodeBlock(**common)
        if candidate.role == LineRole.TABLE_ROW:
            return TableRow(region_id=candidate.region_id, cells=candidate.cells, **common)
        return Paragraph(**common)


def role_histogram(elements: list[DocumentElement]) -> Counter:
    """Count elements by kind, for the conversion summary log."""
    return Counter(e.kind.value for e in elements)
