"""Base models and common types for the layout structure pipeline."""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class PrimitiveKind(str, Enum):
    """Kinds of vector graphics primitives."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    RECTANGLE = "rectangle"


class Orientation(str, Enum):
    """Orientation of a resolved rule."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class ElementKind(str, Enum):
    """Structural roles of emitted document elements."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "list_item"
    BLOCK_QUOTE = "block_quote"
    TABLE_ROW = "table_row"
    TABLE = "table"
    DIVIDER = "divider"
    CODE_BLOCK = "code_block"


class Alignment(str, Enum):
    """Column alignment hint derived from cell offsets."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFIED = "justified"


class WarningCode(str, Enum):
    """Recorded degradations. None of them aborts a document."""

    MALFORMED_INPUT = "malformed_input"
    AMBIGUOUS_TABLE = "ambiguous_table"
    STATISTICS_UNAVAILABLE = "statistics_unavailable"
    MISSING_FONT_DATA = "missing_font_data"
    PAGE_ABANDONED = "page_abandoned"
    PAGE_FAILED = "page_failed"


class BaseIRModel(BaseModel):
    """Base class for immutable pipeline models."""

    class Config:
        frozen = True


class BoundingBox(BaseIRModel):
    """Axis-aligned box with a top-left origin; y grows downward."""

    x0: float = Field(..., description="Left edge")
    y0: float = Field(..., description="Top edge")
    x1: float = Field(..., description="Right edge")
    y1: float = Field(..., description="Bottom edge")

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def center_x(self) -> float:
        return (self.x0 + self.x1) / 2

    @property
    def center_y(self) -> float:
        return (self.y0 + self.y1) / 2

    @property
    def is_finite(self) -> bool:
        """Check that every coordinate is a finite number."""
        return all(math.isfinite(v) for v in (self.x0, self.y0, self.x1, self.y1))

    @property
    def is_inverted(self) -> bool:
        """Check whether the far edges lie before the near edges."""
        return self.x1 < self.x0 or self.y1 < self.y0

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest box enclosing both boxes."""
        return BoundingBox(
            x0=min(self.x0, other.x0),
            y0=min(self.y0, other.y0),
            x1=max(self.x1, other.x1),
            y1=max(self.y1, other.y1),
        )

    def horizontal_overlap(self, other: "BoundingBox") -> float:
        """Length of the shared x-interval (negative when apart)."""
        return min(self.x1, other.x1) - max(self.x0, other.x0)

    def vertical_overlap(self, other: "BoundingBox") -> float:
        """Length of the shared y-interval (negative when apart)."""
        return min(self.y1, other.y1) - max(self.y0, other.y0)

    def intersects(self, other: "BoundingBox") -> bool:
        return self.horizontal_overlap(other) >= 0 and self.vertical_overlap(other) >= 0

    def contains_point(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1

    @classmethod
    def enclosing(cls, boxes: list["BoundingBox"]) -> "BoundingBox":
        """Union of a non-empty list of boxes."""
        if not boxes:
            raise ValueError("Cannot enclose an empty list of boxes")
        out = boxes[0]
        for box in boxes[1:]:
            out = out.union(box)
        return out


class ConversionWarning(BaseIRModel):
    """A recorded degradation, reported to the caller alongside the output."""

    code: WarningCode
    message: str
    page_number: Optional[int] = Field(None, ge=1)
    detail: dict[str, Any] = Field(default_factory=dict)
