"""Table Building Stage - Turn table-row candidates into full grids.

Flow, per table region:
1. Bucket the words of the region's rows (and of text elements that lie
   inside it, such as wrapped cell lines) into (row, column) by midpoint
2. Merge neighbouring cells wherever an internal rule does not cover the
   shared edge; non-rectangular merges demote the whole region
3. Infer each column's alignment from the spread of cell offsets
4. Absorb short paragraphs directly below the table into its last row

The result is one TableRow per grid row with every intersection present.
"""

import logging
from collections import defaultdict
from typing import Callable, Optional

import numpy as np

from docstruct.config import Settings, settings
from docstruct.errors import AmbiguousTableError
from docstruct.models import (
    Alignment,
    BoundingBox,
    ColumnBoundary,
    ConversionWarning,
    DocumentElement,
    ElementKind,
    Line,
    Paragraph,
    TableCell,
    TableRegion,
    TableRow,
    Word,
)

logger = logging.getLogger(__name__)

# Elements whose lines may be orphaned cell content
TEXT_KINDS = {
    ElementKind.PARAGRAPH,
    ElementKind.HEADING,
    ElementKind.LIST_ITEM,
    ElementKind.BLOCK_QUOTE,
    ElementKind.CODE_BLOCK,
}

# Justified columns have content covering most of the column width
JUSTIFIED_FILL_RATIO = 0.8

Position = tuple[int, int]


class TableBuilder:
    """Builds table rows with complete cell grids for each region of a page."""

    def __init__(self, config: Optional[Settings] = None):
        """Initialize table builder.

        Args:
            config: Thresholds (default: global settings).
        """
        self.config = config or settings

        # Ordered veto predicates; the first match rejects absorption
        self.absorption_vetoes: list[
            tuple[str, Callable[[Paragraph, BoundingBox, TableRegion], bool]]
        ] = [
            ("not_below_table", self._not_below_table),
            ("outside_column_span", self._outside_column_span),
            ("exceeds_length_cap", self._exceeds_length_cap),
            ("gap_too_large", self._gap_too_large),
        ]

    def build(
        self,
        elements: list[DocumentElement],
        regions: tuple[TableRegion, ...],
        page_number: int,
    ) -> tuple[list[DocumentElement], list[ConversionWarning]]:
        """Resolve every region of a page.

        Args:
            elements: Classified elements of the page in reading order.
            regions: Valid table regions of the page.
            page_number: 1-indexed page number.

        Returns:
            Tuple of (elements with table rows rebuilt, warnings).
        """
        warnings: list[ConversionWarning] = []
        for region in regions:
            try:
                elements = self.build_region(elements, region)
            except AmbiguousTableError as e:
                logger.warning("Page %d: demoting table %s: %s", page_number, region.id, e)
                elements = self._demote(elements, region)
                warnings.append(
                    ConversionWarning(
                        code=e.code,
                        message=str(e),
                        page_number=page_number,
                        detail={"region_id": region.id},
                    )
                )
        return elements, warnings

    def build_region(
        self,
        elements: list[DocumentElement],
        region: TableRegion,
    ) -> list[DocumentElement]:
        """Replace a region's candidates with complete table rows.

        Raises:
            AmbiguousTableError: If merged cells do not form rectangles.
        """
        member_idx = [
            i
            for i, e in enumerate(elements)
            if (e.kind == ElementKind.TABLE_ROW and e.region_id == region.id)
            or (e.kind in TEXT_KINDS and self._inside(e, region))
        ]
        if not any(elements[i].kind == ElementKind.TABLE_ROW for i in member_idx):
            return elements

        members = [elements[i] for i in member_idx]
        grid = self._bucket_words(region, members)
        cells = self._merge_spans(region, grid)
        columns = self._column_boundaries(region, cells)

        member_set = set(member_idx)
        remaining = [e for i, e in enumerate(elements) if i not in member_set]
        position = member_idx[0]

        absorbed, cells = self._absorb(region, cells, remaining[position:])
        remaining = remaining[:position] + remaining[position + len(absorbed):]

        rows = self._emit_rows(region, cells, columns, members, absorbed)
        logger.debug(
            "Table %s: %dx%d grid, %d absorbed paragraphs",
            region.id,
            region.num_rows,
            region.num_cols,
            len(absorbed),
        )
        return remaining[:position] + rows + remaining[position:]

    def _inside(self, element: DocumentElement, region: TableRegion) -> bool:
        return bool(element.lines) and all(
            region.bbox.contains_point(line.bbox.center_x, line.bbox.center_y)
            for line in element.lines
        )

    def _bucket_words(
        self,
        region: TableRegion,
        members: list[DocumentElement],
    ) -> dict[Position, list[tuple[Line, Word]]]:
        """Assign every word of the members to the grid position under its midpoint."""
        grid: dict[Position, list[tuple[Line, Word]]] = defaultdict(list)
        for element in members:
            for line in element.lines:
                for word in line.words:
                    position = (
                        region.row_at(word.bbox.center_y),
                        region.column_at(word.bbox.center_x),
                    )
                    grid[position].append((line, word))
        return grid

    def _merge_spans(
        self,
        region: TableRegion,
        grid: dict[Position, list[tuple[Line, Word]]],
    ) -> dict[Position, TableCell]:
        """Detect spanning cells and build the full cell grid.

        Raises:
            AmbiguousTableError: If a merged group is not a rectangle.
        """
        parent: dict[Position, Position] = {
            (r, c): (r, c) for r in range(region.num_rows) for c in range(region.num_cols)
        }

        def find(p: Position) -> Position:
            while parent[p] != p:
                parent[p] = parent[parent[p]]
                p = parent[p]
            return p

        def union(a: Position, b: Position) -> None:
            ra, rb = find(a), find(b)
            if ra != rb:
                parent[max(ra, rb)] = min(ra, rb)

        rows, cols = region.row_boundaries, region.column_boundaries
        for r in range(region.num_rows):
            y_mid = (rows[r] + rows[r + 1]) / 2
            for c in range(region.num_cols - 1):
                if not self._rule_covers(region.vertical_segments, cols[c + 1], y_mid):
                    union((r, c), (r, c + 1))
        for c in range(region.num_cols):
            x_mid = (cols[c] + cols[c + 1]) / 2
            for r in range(region.num_rows - 1):
                if not self._rule_covers(region.horizontal_segments, rows[r + 1], x_mid):
                    union((r, c), (r + 1, c))

        groups: dict[Position, list[Position]] = defaultdict(list)
        for position in parent:
            groups[find(position)].append(position)

        cells: dict[Position, TableCell] = {}
        for members in groups.values():
            r0 = min(r for r, _ in members)
            r1 = max(r for r, _ in members)
            c0 = min(c for _, c in members)
            c1 = max(c for _, c in members)
            if len(members) != (r1 - r0 + 1) * (c1 - c0 + 1):
                raise AmbiguousTableError(
                    f"Merged cells at row {r0}, column {c0} do not form a rectangle"
                )

            entries = [entry for p in sorted(members) for entry in grid.get(p, [])]
            cells[(r0, c0)] = TableCell(
                row=r0,
                col=c0,
                row_span=r1 - r0 + 1,
                col_span=c1 - c0 + 1,
                words=tuple(w for _, w in entries),
                segments=(_cell_text(entries),) if entries else (),
            )
            for p in members:
                if p != (r0, c0):
                    cells[p] = TableCell(row=p[0], col=p[1], is_covered=True)
        return cells

    def _rule_covers(self, segments, position: float, coordinate: float) -> bool:
        tol = self.config.boundary_tolerance
        return any(
            abs(s.position - position) <= tol and s.covers(coordinate, tol) for s in segments
        )

    def _column_boundaries(
        self,
        region: TableRegion,
        cells: dict[Position, TableCell],
    ) -> tuple[ColumnBoundary, ...]:
        cols = region.column_boundaries
        return tuple(
            ColumnBoundary(
                x0=cols[c],
                x1=cols[c + 1],
                alignment=self._column_alignment(
                    cols[c],
                    cols[c + 1],
                    [
                        cell
                        for (_, col), cell in cells.items()
                        if col == c and cell.col_span == 1 and cell.words
                    ],
                ),
            )
            for c in range(region.num_cols)
        )

    def _column_alignment(self, x0: float, x1: float, cells: list[TableCell]) -> Alignment:
        """Alignment with the smallest offset variance; ties prefer left, right, center."""
        if not cells:
            return Alignment.LEFT

        spans = np.array(
            [
                (min(w.bbox.x0 for w in cell.words), max(w.bbox.x1 for w in cell.words))
                for cell in cells
            ]
        )
        left = spans[:, 0] - x0
        right = x1 - spans[:, 1]
        center = (spans[:, 0] + spans[:, 1]) / 2 - (x0 + x1) / 2
        variances = {
            Alignment.LEFT: float(np.var(left)),
            Alignment.RIGHT: float(np.var(right)),
            Alignment.CENTER: float(np.var(center)),
        }
        tol = self.config.alignment_tolerance

        fill = float(np.mean(spans[:, 1] - spans[:, 0])) / (x1 - x0)
        if (
            len(cells) >= 2
            and variances[Alignment.LEFT] <= tol
            and variances[Alignment.RIGHT] <= tol
            and fill >= JUSTIFIED_FILL_RATIO
        ):
            return Alignment.JUSTIFIED

        order = (Alignment.LEFT, Alignment.RIGHT, Alignment.CENTER)
        for alignment in order:
            if variances[alignment] <= tol:
                return alignment
        return min(order, key=lambda a: variances[a])

    # --- Absorption ---

    def _absorb(
        self,
        region: TableRegion,
        cells: dict[Position, TableCell],
        following: list[DocumentElement],
    ) -> tuple[list[Paragraph], dict[Position, TableCell]]:
        """Absorb consecutive paragraphs below the table into its last row."""
        absorbed: list[Paragraph] = []
        reference = region.bbox
        cells = dict(cells)

        for element in following:
            if element.kind != ElementKind.PARAGRAPH:
                break
            veto = next(
                (name for name, predicate in self.absorption_vetoes if predicate(element, reference, region)),
                None,
            )
            if veto is not None:
                logger.debug("Table %s: not absorbing %s (%s)", region.id, element.id, veto)
                break

            anchor = self._anchor(cells, region.num_rows - 1, self._best_column(element, region))
            cell = cells[anchor]
            cells[anchor] = cell.model_copy(
                update={
                    "words": cell.words + element.words,
                    "segments": cell.segments + (element.text,),
                }
            )
            absorbed.append(element)
            reference = element.bbox
        return absorbed, cells

    def _not_below_table(self, element: Paragraph, reference: BoundingBox, region: TableRegion) -> bool:
        return element.bbox.y0 < reference.y1 - self.config.boundary_tolerance

    def _outside_column_span(self, element: Paragraph, reference: BoundingBox, region: TableRegion) -> bool:
        """No horizontal overlap with the table's columns; crossing a column rule is fine."""
        tol = self.config.boundary_tolerance
        cols = region.column_boundaries
        return element.bbox.x1 < cols[0] - tol or element.bbox.x0 > cols[-1] + tol

    def _exceeds_length_cap(self, element: Paragraph, reference: BoundingBox, region: TableRegion) -> bool:
        return len(element.text) > self.config.absorption_length_cap

    def _gap_too_large(self, element: Paragraph, reference: BoundingBox, region: TableRegion) -> bool:
        gap = element.bbox.y0 - reference.y1
        return gap > self.config.table_absorption_gap_factor * element.lines[0].size

    def _best_column(self, element: Paragraph, region: TableRegion) -> int:
        cols = region.column_boundaries
        overlaps = [
            min(element.bbox.x1, cols[c + 1]) - max(element.bbox.x0, cols[c])
            for c in range(region.num_cols)
        ]
        return max(range(region.num_cols), key=lambda c: (overlaps[c], -c))

    def _anchor(self, cells: dict[Position, TableCell], row: int, col: int) -> Position:
        """Grid position of the cell that owns (row, col)."""
        if not cells[(row, col)].is_covered:
            return (row, col)
        for (r, c), cell in cells.items():
            if cell.is_covered:
                continue
            if r <= row < r + cell.row_span and c <= col < c + cell.col_span:
                return (r, c)
        raise AmbiguousTableError(f"No cell owns row {row}, column {col}")

    # --- Output ---

    def _emit_rows(
        self,
        region: TableRegion,
        cells: dict[Position, TableCell],
        columns: tuple[ColumnBoundary, ...],
        members: list[DocumentElement],
        absorbed: list[Paragraph],
    ) -> list[TableRow]:
        rows = region.row_boundaries
        last = region.num_rows - 1

        row_lines: dict[int, dict[tuple[int, int], Line]] = defaultdict(dict)
        for element in members:
            for line in element.lines:
                r = region.row_at(line.bbox.center_y)
                row_lines[r][(line.page_number, line.index)] = line
        for element in absorbed:
            for line in element.lines:
                row_lines[last][(line.page_number, line.index)] = line

        out = []
        for r in range(region.num_rows):
            bbox = BoundingBox(x0=region.bbox.x0, y0=rows[r], x1=region.bbox.x1, y1=rows[r + 1])
            if r == last:
                for element in absorbed:
                    bbox = bbox.union(element.bbox)
            lines = [row_lines[r][key] for key in sorted(row_lines[r])]
            out.append(
                TableRow(
                    id=f"{region.id}_r{r}",
                    page_number=region.page_number,
                    bbox=bbox,
                    lines=tuple(lines),
                    region_id=region.id,
                    row_index=r,
                    cells=tuple(cells[(r, c)] for c in range(region.num_cols)),
                    columns=columns,
                )
            )
        return out

    def _demote(self, elements: list[DocumentElement], region: TableRegion) -> list[DocumentElement]:
        """Turn the region's row candidates into plain paragraphs."""
        out: list[DocumentElement] = []
        for element in elements:
            if element.kind == ElementKind.TABLE_ROW and element.region_id == region.id:
                out.append(
                    Paragraph(
                        id=element.id,
                        page_number=element.page_number,
                        bbox=element.bbox,
                        lines=element.lines,
                    )
                )
            else:
                out.append(element)
        return out


def _cell_text(entries: list[tuple[Line, Word]]) -> str:
    """Cell text: per source line, keep the line's joiners; lines join with a space."""
    by_line: dict[tuple[int, int], tuple[Line, set[int]]] = {}
    for line, word in entries:
        key = (line.page_number, line.index)
        if key not in by_line:
            by_line[key] = (line, set())
        by_line[key][1].add(word.index)
    return " ".join(line.text_of(indices) for line, indices in (by_line[k] for k in sorted(by_line)))
