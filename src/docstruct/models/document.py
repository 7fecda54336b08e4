"""Document-level IR models: page inputs, page results and the conversion result."""

from typing import Optional

from pydantic import Field

from .base import BaseIRModel, ConversionWarning
from .element import DocumentElement
from .graphics import GraphicsAnalysis, GraphicsPrimitive
from .statistics import DocumentStatistics
from .text import Line, Word


class DocumentSource(BaseIRModel):
    """Metadata about the file a conversion was read from."""

    source_path: str = Field(..., description="Original file path")
    source_filename: str = Field(..., description="Original filename")
    source_hash: str = Field(..., description="SHA-256 hash of the file")
    page_count: int = Field(..., ge=0)


class PageInput(BaseIRModel):
    """
    Everything the extraction adapter delivers for one page.

    No ordering is assumed for words or primitives.
    """

    page_number: int = Field(..., ge=1, description="1-indexed page number")
    width: Optional[float] = Field(None, gt=0, description="Page width in geometry units")
    height: Optional[float] = Field(None, gt=0, description="Page height in geometry units")
    words: list[Word] = Field(default_factory=list)
    primitives: list[GraphicsPrimitive] = Field(default_factory=list)


class PageLayout(BaseIRModel):
    """Pass-1 output for one page, handed to pass 2 unchanged."""

    page_number: int = Field(..., ge=1)
    width: Optional[float] = None
    height: Optional[float] = None
    lines: tuple[Line, ...] = ()
    graphics: GraphicsAnalysis = Field(default_factory=GraphicsAnalysis)
    warnings: tuple[ConversionWarning, ...] = ()

    @property
    def words(self) -> list[Word]:
        return [w for line in self.lines for w in line.words]

    @property
    def text_lines(self) -> list[Line]:
        """Lines outside every table region."""
        return [line for line in self.lines if self.graphics.region_for(line.bbox) is None]


class PageResult(BaseIRModel):
    """Classified elements of one page plus the degradations it recorded."""

    page_number: int = Field(..., ge=1)
    elements: list[DocumentElement] = Field(default_factory=list)
    warnings: list[ConversionWarning] = Field(default_factory=list)


class ConversionResult(BaseIRModel):
    """
    Output of a document conversion.

    Pages appear in document order; abandoned and failed pages are listed
    but have no entry in `pages`.
    """

    source: Optional[DocumentSource] = None
    pages: list[PageResult] = Field(default_factory=list)
    statistics: DocumentStatistics
    warnings: list[ConversionWarning] = Field(
        default_factory=list, description="Document-level warnings (pass 1, abandoned and failed pages)"
    )
    abandoned_pages: list[int] = Field(default_factory=list)
    failed_pages: list[int] = Field(default_factory=list)

    @property
    def elements(self) -> list[DocumentElement]:
        """All elements, concatenated across pages in document order."""
        return [e for page in self.pages for e in page.elements]

    @property
    def all_warnings(self) -> list[ConversionWarning]:
        """Document-level warnings followed by page warnings in page order."""
        return list(self.warnings) + [w for page in self.pages for w in page.warnings]

    @property
    def is_complete(self) -> bool:
        return not self.abandoned_pages and not self.failed_pages
