"""Vector graphics IR models: primitives, table regions and rule hints."""

from typing import Optional

from pydantic import Field, model_validator

from .base import BaseIRModel, BoundingBox, ConversionWarning, Orientation, PrimitiveKind


class GraphicsPrimitive(BaseIRModel):
    """Line segment or rectangle extracted from the page's drawing operators."""

    kind: PrimitiveKind
    x0: float
    y0: float
    x1: float
    y1: float
    stroke_width: float = Field(default=1.0, ge=0.0)

    @property
    def bbox(self) -> BoundingBox:
        """Normalized box, whatever order the endpoints came in."""
        return BoundingBox(
            x0=min(self.x0, self.x1),
            y0=min(self.y0, self.y1),
            x1=max(self.x0, self.x1),
            y1=max(self.y0, self.y1),
        )


class BoundarySegment(BaseIRModel):
    """
    A resolved rule.

    For a horizontal rule `position` is its y and (start, end) its x-span;
    for a vertical rule `position` is its x and (start, end) its y-span.
    """

    orientation: Orientation
    position: float
    start: float
    end: float

    def covers(self, coordinate: float, tolerance: float = 0.0) -> bool:
        """Check whether the rule's span includes the coordinate."""
        return self.start - tolerance <= coordinate <= self.end + tolerance


class TableRegion(BaseIRModel):
    """
    Candidate table area derived from clustered rules.

    Row boundaries are y-positions and column boundaries x-positions of the
    grid edges, including the region's outer extent. Both must be strictly
    increasing; fewer than two of either is not a table.
    """

    id: str
    page_number: int = Field(..., ge=1)
    bbox: BoundingBox
    row_boundaries: tuple[float, ...]
    column_boundaries: tuple[float, ...]
    horizontal_segments: tuple[BoundarySegment, ...] = ()
    vertical_segments: tuple[BoundarySegment, ...] = ()

    @model_validator(mode="after")
    def _check_boundaries(self) -> "TableRegion":
        for name, values in (
            ("row_boundaries", self.row_boundaries),
            ("column_boundaries", self.column_boundaries),
        ):
            if len(values) < 2:
                raise ValueError(f"{name} needs at least two entries")
            if any(b <= a for a, b in zip(values, values[1:])):
                raise ValueError(f"{name} must be strictly increasing")
        return self

    @property
    def num_rows(self) -> int:
        return len(self.row_boundaries) - 1

    @property
    def num_cols(self) -> int:
        return len(self.column_boundaries) - 1

    @property
    def internal_column_boundaries(self) -> tuple[float, ...]:
        return self.column_boundaries[1:-1]

    def row_at(self, y: float) -> int:
        """Row interval containing y, clamped to the grid."""
        return _interval_index(self.row_boundaries, y)

    def column_at(self, x: float) -> int:
        """Column interval containing x, clamped to the grid."""
        return _interval_index(self.column_boundaries, x)


class RuleHint(BaseIRModel):
    """Decorative rule kept from a cluster that did not become a table."""

    orientation: Orientation
    bbox: BoundingBox
    page_number: int = Field(..., ge=1)

    @property
    def length(self) -> float:
        if self.orientation == Orientation.HORIZONTAL:
            return self.bbox.width
        return self.bbox.height


class GraphicsAnalysis(BaseIRModel):
    """Per-page outcome of graphics analysis."""

    regions: tuple[TableRegion, ...] = ()
    rule_hints: tuple[RuleHint, ...] = ()
    demoted_regions: tuple[BoundingBox, ...] = Field(
        default=(), description="Ambiguous grids whose lines fall back to paragraphs"
    )
    warnings: tuple[ConversionWarning, ...] = ()

    def region_for(self, box: BoundingBox) -> Optional[TableRegion]:
        """First region containing the centre of a box."""
        for region in self.regions:
            if region.bbox.contains_point(box.center_x, box.center_y):
                return region
        return None


def _interval_index(edges: tuple[float, ...], value: float) -> int:
    for i in range(len(edges) - 1):
        if value < edges[i + 1]:
            return i
    return len(edges) - 2
