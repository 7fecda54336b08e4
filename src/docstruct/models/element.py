"""Document element IR models - the tagged output variants of the classifier."""

from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import Field

from .base import Alignment, BaseIRModel, BoundingBox, ElementKind
from .text import Line, Word

# Marker placed between content segments of one table cell when emitted.
LINE_BREAK = "<br>"


class ElementBase(BaseIRModel):
    """Fields shared by every document element."""

    id: str
    page_number: int = Field(..., ge=1)
    bbox: BoundingBox
    lines: tuple[Line, ...] = Field(default=(), description="Source lines, in reading order")

    @property
    def words(self) -> tuple[Word, ...]:
        return tuple(w for line in self.lines for w in line.words)

    @property
    def text(self) -> str:
        return " ".join(line.text for line in self.lines)

    @property
    def size(self) -> Optional[float]:
        """Font size of the first source line."""
        if not self.lines:
            return None
        return self.lines[0].font_size


class Heading(ElementBase):
    kind: Literal[ElementKind.HEADING] = ElementKind.HEADING
    level: int = Field(..., ge=1, le=6)


class Paragraph(ElementBase):
    kind: Literal[ElementKind.PARAGRAPH] = ElementKind.PARAGRAPH


class ListItem(ElementBase):
    kind: Literal[ElementKind.LIST_ITEM] = ElementKind.LIST_ITEM
    ordinal: Optional[int] = Field(None, ge=0, description="Number for ordered items, None for bullets")
    depth: int = Field(default=0, ge=0)
    marker: str = Field(default="", description="Marker glyphs as they appear at the line start")


class BlockQuote(ElementBase):
    kind: Literal[ElementKind.BLOCK_QUOTE] = ElementKind.BLOCK_QUOTE
    depth: int = Field(default=1, ge=1)


class Divider(ElementBase):
    kind: Literal[ElementKind.DIVIDER] = ElementKind.DIVIDER


class CodeBlock(ElementBase):
    """Consecutive lines set in a fixed-pitch font."""

    kind: Literal[ElementKind.CODE_BLOCK] = ElementKind.CODE_BLOCK


class TableCell(BaseIRModel):
    """
    Individual cell in a table grid.

    Covered cells stand in for grid positions inside a spanning cell so
    that every (row, column) intersection has an entry.
    """

    row: int = Field(..., ge=0, description="0-indexed row number")
    col: int = Field(..., ge=0, description="0-indexed column number")
    row_span: int = Field(default=1, ge=1)
    col_span: int = Field(default=1, ge=1)
    words: tuple[Word, ...] = ()
    segments: tuple[str, ...] = Field(
        default=(), description="Content pieces; absorbed continuation lines start new segments"
    )
    is_covered: bool = Field(default=False, description="Position lies inside another cell's span")

    @property
    def text(self) -> str:
        return LINE_BREAK.join(s for s in self.segments if s)

    @property
    def is_empty(self) -> bool:
        return not any(self.segments)


class ColumnBoundary(BaseIRModel):
    """Column extent plus the alignment inferred from its cells."""

    x0: float
    x1: float
    alignment: Alignment = Alignment.LEFT


class TableRow(ElementBase):
    """
    One row of a table.

    Classifier candidates carry one cell per column of the region; rows
    from the table builder also carry their grid index and the table's
    column boundaries.
    """

    kind: Literal[ElementKind.TABLE_ROW] = ElementKind.TABLE_ROW
    region_id: Optional[str] = None
    row_index: Optional[int] = Field(None, ge=0)
    cells: tuple[TableCell, ...] = ()
    columns: tuple[ColumnBoundary, ...] = ()

    @property
    def words(self) -> tuple[Word, ...]:
        return tuple(w for cell in self.cells for w in cell.words)


class Table(ElementBase):
    """Assembled table: a full rectangular grid of cells."""

    kind: Literal[ElementKind.TABLE] = ElementKind.TABLE
    region_id: str
    num_rows: int = Field(..., ge=1)
    num_cols: int = Field(..., ge=1)
    cells: tuple[TableCell, ...] = ()
    columns: tuple[ColumnBoundary, ...] = ()

    @property
    def words(self) -> tuple[Word, ...]:
        return tuple(w for cell in self.cells for w in cell.words)

    def get_cell(self, row: int, col: int) -> Optional[TableCell]:
        """Get the cell at the specified row and column."""
        for cell in self.cells:
            if cell.row == row and cell.col == col:
                return cell
        return None

    def get_row(self, row: int) -> list[TableCell]:
        """Get all cells in a row."""
        return sorted(
            [c for c in self.cells if c.row == row],
            key=lambda c: c.col,
        )

    def to_markdown(self, cell_text: Optional[Callable[[TableCell], str]] = None) -> str:
        """Convert table to a pipe table; the first row is the header.

        Args:
            cell_text: Renders one cell's content (default: its plain text).
        """
        cell_text = cell_text or (lambda cell: cell.text)
        grid: list[list[str]] = [[""] * self.num_cols for _ in range(self.num_rows)]
        for cell in self.cells:
            if not cell.is_covered:
                grid[cell.row][cell.col] = _escape_cell(cell_text(cell))

        lines = []
        for i, row in enumerate(grid):
            lines.append("| " + " | ".join(row) + " |")
            # Separator after the header row carries the alignment hints
            if i == 0:
                lines.append("| " + " | ".join(self._separators()) + " |")

        return "\n".join(lines)

    def _separators(self) -> list[str]:
        alignments = [c.alignment for c in self.columns]
        alignments += [Alignment.LEFT] * (self.num_cols - len(alignments))
        return [_SEPARATORS[a] for a in alignments]


_SEPARATORS = {
    Alignment.LEFT: "---",
    Alignment.JUSTIFIED: "---",
    Alignment.CENTER: ":---:",
    Alignment.RIGHT: "---:",
}


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ").strip()


DocumentElement = Annotated[
    Union[Heading, Paragraph, ListItem, BlockQuote, CodeBlock, TableRow, Table, Divider],
    Field(discriminator="kind"),
]
