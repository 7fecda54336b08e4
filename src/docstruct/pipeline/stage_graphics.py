"""Graphics Analysis Stage - Turn vector rules into table regions.

Flow:
1. Normalize primitives into horizontal and vertical segments
   (thin rectangles are rules, other rectangles give their four edges,
   diagonals are dropped)
2. Cluster segments into connected components by proximity
3. Group each component's rules into row and column boundaries
4. Keep components with at least two of each that enclose a line;
   the rest become rule hints
5. Demote grids that are too dense or whose rules do not line up
"""

import logging
from typing import Optional

from docstruct.config import settings
from docstruct.errors import AmbiguousTableError
from docstruct.models import (
    BoundarySegment,
    BoundingBox,
    ConversionWarning,
    GraphicsAnalysis,
    GraphicsPrimitive,
    Line,
    Orientation,
    PrimitiveKind,
    RuleHint,
    TableRegion,
    WarningCode,
)

logger = logging.getLogger(__name__)


def segment_box(segment: BoundarySegment) -> BoundingBox:
    """Zero-thickness box covered by a segment."""
    if segment.orientation == Orientation.HORIZONTAL:
        return BoundingBox(
            x0=segment.start, y0=segment.position, x1=segment.end, y1=segment.position
        )
    return BoundingBox(
        x0=segment.position, y0=segment.start, x1=segment.position, y1=segment.end
    )


def box_distance(a: BoundingBox, b: BoundingBox) -> float:
    """Chebyshev gap between two boxes; 0 when they touch or overlap."""
    return max(0.0, -a.horizontal_overlap(b), -a.vertical_overlap(b))


def group_positions(values: list[float], tolerance: float) -> list[list[float]]:
    """Chain sorted values into groups whose neighbours are within tolerance."""
    groups: list[list[float]] = []
    for value in sorted(values):
        if groups and value - groups[-1][-1] <= tolerance:
            groups[-1].append(value)
        else:
            groups.append([value])
    return groups


class GraphicsAnalyzer:
    """Detects table regions from a page's vector graphics."""

    def __init__(
        self,
        cluster_distance: Optional[float] = None,
        boundary_tolerance: Optional[float] = None,
        min_cell_size: Optional[float] = None,
        rule_thickness: Optional[float] = None,
    ):
        """Initialize graphics analyzer.

        Args:
            cluster_distance: Max gap between segments of one component.
            boundary_tolerance: Rules closer than this are one boundary.
            min_cell_size: Boundaries closer than this make a grid ambiguous.
            rule_thickness: Rectangles thinner than this are rules.

        All default from settings.
        """
        self.cluster_distance = cluster_distance or settings.cluster_distance
        self.boundary_tolerance = boundary_tolerance or settings.boundary_tolerance
        self.min_cell_size = min_cell_size or settings.min_cell_size
        self.rule_thickness = rule_thickness or settings.rule_thickness

    def analyze(
        self,
        primitives: list[GraphicsPrimitive],
        lines: list[Line],
        page_number: int,
    ) -> GraphicsAnalysis:
        """Detect table regions and rule hints on one page.

        Args:
            primitives: Page primitives in any order.
            lines: Assembled lines of the same page.
            page_number: 1-indexed page number.

        Returns:
            GraphicsAnalysis with regions in reading order.
        """
        warnings: list[ConversionWarning] = []
        segments: list[BoundarySegment] = []

        for i, primitive in enumerate(primitives):
            box = BoundingBox(
                x0=primitive.x0, y0=primitive.y0, x1=primitive.x1, y1=primitive.y1
            )
            if not box.is_finite:
                logger.warning("Page %d: skipping primitive %d with non-finite coordinates", page_number, i)
                warnings.append(
                    ConversionWarning(
                        code=WarningCode.MALFORMED_INPUT,
                        message=f"Primitive {i} has non-finite coordinates",
                        page_number=page_number,
                        detail={"primitive_index": i},
                    )
                )
                continue
            segments.extend(self.to_segments(primitive))

        regions: list[TableRegion] = []
        hints: list[RuleHint] = []
        demoted: list[BoundingBox] = []

        components = self.cluster(segments)
        components.sort(key=lambda comp: self._component_box(comp).y0)

        for component in components:
            bbox = self._component_box(component)
            horizontal = [s for s in component if s.orientation == Orientation.HORIZONTAL]
            vertical = [s for s in component if s.orientation == Orientation.VERTICAL]
            row_groups = group_positions([s.position for s in horizontal], self.boundary_tolerance)
            col_groups = group_positions([s.position for s in vertical], self.boundary_tolerance)

            encloses_text = any(
                bbox.contains_point(line.bbox.center_x, line.bbox.center_y) for line in lines
            )
            if len(row_groups) < 2 or len(col_groups) < 2 or not encloses_text:
                hints.extend(
                    RuleHint(orientation=s.orientation, bbox=segment_box(s), page_number=page_number)
                    for s in component
                )
                continue

            region_id = f"p{page_number}_t{len(regions) + len(demoted)}"
            try:
                regions.append(
                    self._build_region(region_id, page_number, bbox, horizontal, vertical)
                )
            except AmbiguousTableError as e:
                logger.warning("Page %d: demoting region %s: %s", page_number, region_id, e)
                demoted.append(bbox)
                warnings.append(
                    ConversionWarning(
                        code=e.code,
                        message=str(e),
                        page_number=page_number,
                        detail={"region_id": region_id, "bbox": bbox.model_dump()},
                    )
                )

        logger.debug(
            "Page %d: %d segments -> %d regions, %d rule hints, %d demoted",
            page_number,
            len(segments),
            len(regions),
            len(hints),
            len(demoted),
        )
        return GraphicsAnalysis(
            regions=tuple(regions),
            rule_hints=tuple(hints),
            demoted_regions=tuple(demoted),
            warnings=tuple(warnings),
        )

    def to_segments(self, primitive: GraphicsPrimitive) -> list[BoundarySegment]:
        """Normalize one primitive into axis-aligned segments.

        Orientation is taken from the geometry, so a line tagged horizontal
        that is actually diagonal is dropped.
        """
        box = primitive.bbox
        thin_x = box.width < self.rule_thickness
        thin_y = box.height < self.rule_thickness

        if primitive.kind == PrimitiveKind.RECTANGLE and not (thin_x or thin_y):
            return [
                BoundarySegment(orientation=Orientation.HORIZONTAL, position=box.y0, start=box.x0, end=box.x1),
                BoundarySegment(orientation=Orientation.HORIZONTAL, position=box.y1, start=box.x0, end=box.x1),
                BoundarySegment(orientation=Orientation.VERTICAL, position=box.x0, start=box.y0, end=box.y1),
                BoundarySegment(orientation=Orientation.VERTICAL, position=box.x1, start=box.y0, end=box.y1),
            ]

        if thin_y and not thin_x:
            return [
                BoundarySegment(
                    orientation=Orientation.HORIZONTAL,
                    position=box.center_y,
                    start=box.x0,
                    end=box.x1,
                )
            ]
        if thin_x and not thin_y:
            return [
                BoundarySegment(
                    orientation=Orientation.VERTICAL,
                    position=box.center_x,
                    start=box.y0,
                    end=box.y1,
                )
            ]
        # Diagonal or a dot
        return []

    def cluster(self, segments: list[BoundarySegment]) -> list[list[BoundarySegment]]:
        """Split segments into connected components by proximity."""
        boxes = [segment_box(s) for s in segments]
        parent = list(range(len(segments)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for i in range(len(segments)):
            for j in range(i + 1, len(segments)):
                if box_distance(boxes[i], boxes[j]) <= self.cluster_distance:
                    ri, rj = find(i), find(j)
                    if ri != rj:
                        parent[max(ri, rj)] = min(ri, rj)

        components: dict[int, list[BoundarySegment]] = {}
        for i, segment in enumerate(segments):
            components.setdefault(find(i), []).append(segment)
        return list(components.values())

    def _component_box(self, component: list[BoundarySegment]) -> BoundingBox:
        return BoundingBox.enclosing([segment_box(s) for s in component])

    def _build_region(
        self,
        region_id: str,
        page_number: int,
        bbox: BoundingBox,
        horizontal: list[BoundarySegment],
        vertical: list[BoundarySegment],
    ) -> TableRegion:
        """Resolve a component into a grid.

        Raises:
            AmbiguousTableError: If the grid is too dense or the rules of
                one orientation lie outside the extent of the other.
        """
        h_extent = (min(s.start for s in horizontal), max(s.end for s in horizontal))
        v_extent = (min(s.start for s in vertical), max(s.end for s in vertical))
        tol = self.boundary_tolerance

        if any(not (h_extent[0] - tol <= s.position <= h_extent[1] + tol) for s in vertical):
            raise AmbiguousTableError("Column rules lie outside the row rules' extent")
        if any(not (v_extent[0] - tol <= s.position <= v_extent[1] + tol) for s in horizontal):
            raise AmbiguousTableError("Row rules lie outside the column rules' extent")

        row_snap = self._snap_map([s.position for s in horizontal])
        col_snap = self._snap_map([s.position for s in vertical])

        # The outer extent closes open sides of the grid
        rows = self._edges(sorted(set(row_snap.values())), bbox.y0, bbox.y1)
        cols = self._edges(sorted(set(col_snap.values())), bbox.x0, bbox.x1)

        for name, edges in (("row", rows), ("column", cols)):
            for a, b in zip(edges, edges[1:]):
                if b - a < self.min_cell_size:
                    raise AmbiguousTableError(
                        f"Adjacent {name} boundaries {a:.1f} and {b:.1f} are closer than "
                        f"{self.min_cell_size}"
                    )

        return TableRegion(
            id=region_id,
            page_number=page_number,
            bbox=bbox,
            row_boundaries=tuple(rows),
            column_boundaries=tuple(cols),
            horizontal_segments=tuple(
                s.model_copy(update={"position": row_snap[s.position]}) for s in horizontal
            ),
            vertical_segments=tuple(
                s.model_copy(update={"position": col_snap[s.position]}) for s in vertical
            ),
        )

    def _snap_map(self, positions: list[float]) -> dict[float, float]:
        """Map each raw position to the mean of its boundary group."""
        snapped = {}
        for group in group_positions(positions, self.boundary_tolerance):
            mean = sum(group) / len(group)
            for value in group:
                snapped[value] = mean
        return snapped

    def _edges(self, boundaries: list[float], low: float, high: float) -> list[float]:
        edges = list(boundaries)
        if edges[0] - low > self.boundary_tolerance:
            edges.insert(0, low)
        if high - edges[-1] > self.boundary_tolerance:
            edges.append(high)
        return edges
