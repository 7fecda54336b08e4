"""Document Assembly Stage - Collapse table rows into table nodes.

Consecutive TableRow elements of one region become a single Table with
the full cell grid; every other element passes through unchanged.
"""

import logging

from docstruct.models import (
    BoundingBox,
    DocumentElement,
    ElementKind,
    Table,
    TableRow,
)

logger = logging.getLogger(__name__)


class DocumentAssembler:
    """Assembles a page's element sequence into its final form."""

    def assemble(self, elements: list[DocumentElement]) -> list[DocumentElement]:
        """Collapse runs of same-region table rows.

        Args:
            elements: Page elements in reading order.

        Returns:
            Elements with each run of rows replaced by one Table.
        """
        out: list[DocumentElement] = []
        run: list[TableRow] = []

        for element in elements:
            if element.kind == ElementKind.TABLE_ROW and element.region_id is not None:
                if run and run[-1].region_id != element.region_id:
                    out.append(self.to_table(run))
                    run = []
                run.append(element)
                continue
            if run:
                out.append(self.to_table(run))
                run = []
            out.append(element)

        if run:
            out.append(self.to_table(run))
        return out

    def to_table(self, rows: list[TableRow]) -> Table:
        """Build a Table node from the rows of one region."""
        cells = []
        for i, row in enumerate(rows):
            # Unbuilt candidates carry no grid index; number them in order
            if row.row_index is None:
                cells.extend(c.model_copy(update={"row": i, "row_span": 1}) for c in row.cells)
            else:
                cells.extend(row.cells)

        num_rows = max([c.row + c.row_span for c in cells], default=len(rows))
        num_cols = len(rows[0].columns) or max([c.col + c.col_span for c in cells], default=1)
        table = Table(
            id=rows[0].region_id,
            page_number=rows[0].page_number,
            bbox=BoundingBox.enclosing([row.bbox for row in rows]),
            lines=tuple(line for row in rows for line in row.lines),
            region_id=rows[0].region_id,
            num_rows=max(num_rows, len(rows)),
            num_cols=num_cols,
            cells=tuple(cells),
            columns=rows[0].columns,
        )
        logger.debug("Assembled table %s: %dx%d", table.id, table.num_rows, table.num_cols)
        return table
