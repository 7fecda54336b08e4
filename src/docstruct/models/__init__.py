"""IR (Intermediate Representation) models for the layout structure pipeline.

This module defines the Pydantic models that represent data flowing through
the pipeline stages. Extracted and derived models are frozen; stages build
new instances instead of editing existing ones.

Key Design Principles:
1. Geometry only: nothing in the IR depends on the language of the text
2. Provenance preservation: every element keeps its source lines and words
3. Page scoped: only DocumentStatistics spans more than one page
4. Deterministic: identifiers derive from page and position, never from time

Model Hierarchy:
- PageInput → Words + GraphicsPrimitives
- Words → Lines → TextRuns
- GraphicsPrimitives → TableRegions + RuleHints
- Lines → DocumentElements → PageResult → ConversionResult
"""

from .base import (
    Alignment,
    BaseIRModel,
    BoundingBox,
    ConversionWarning,
    ElementKind,
    Orientation,
    PrimitiveKind,
    WarningCode,
)
from .document import (
    ConversionResult,
    DocumentSource,
    PageLayout,
    PageInput,
    PageResult,
)
from .element import (
    LINE_BREAK,
    BlockQuote,
    CodeBlock,
    ColumnBoundary,
    Divider,
    DocumentElement,
    ElementBase,
    Heading,
    ListItem,
    Paragraph,
    Table,
    TableCell,
    TableRow,
)
from .graphics import (
    BoundarySegment,
    GraphicsAnalysis,
    GraphicsPrimitive,
    RuleHint,
    TableRegion,
)
from .statistics import (
    DocumentStatistics,
    FontStatistics,
    SizeCluster,
)
from .text import (
    Line,
    TextRun,
    Word,
)

__all__ = [
    # Base types
    "Alignment",
    "BaseIRModel",
    "BoundingBox",
    "ConversionWarning",
    "ElementKind",
    "Orientation",
    "PrimitiveKind",
    "WarningCode",
    # Text
    "Word",
    "TextRun",
    "Line",
    # Graphics
    "GraphicsPrimitive",
    "BoundarySegment",
    "TableRegion",
    "RuleHint",
    "GraphicsAnalysis",
    # Statistics
    "SizeCluster",
    "FontStatistics",
    "DocumentStatistics",
    # Elements
    "LINE_BREAK",
    "ElementBase",
    "Heading",
    "Paragraph",
    "ListItem",
    "BlockQuote",
    "CodeBlock",
    "Divider",
    "TableCell",
    "ColumnBoundary",
    "TableRow",
    "Table",
    "DocumentElement",
    # Document
    "DocumentSource",
    "PageInput",
    "PageLayout",
    "PageResult",
    "ConversionResult",
]
