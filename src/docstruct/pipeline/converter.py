"""Document Converter - Two-pass orchestration of the pipeline stages.

Pass 1 (every page): validate words, assemble lines, analyze graphics.
Then document statistics are computed once and frozen.
Pass 2 (per page, independent): classify, build tables, assemble.

Pass 2 runs in a process pool for multi-page documents when more than
one worker is configured. With a deadline, pages not finished in time
are abandoned whole; no partial page is ever returned. A page whose
analysis raises is recorded as failed and the rest of the document
is still converted.
"""

import logging
import time
from concurrent.futures import ProcessPoolExecutor, wait
from pathlib import Path
from typing import Optional

from docstruct.config import Settings, settings
from docstruct.errors import StatisticsUnavailableError
from docstruct.models import (
    ConversionResult,
    ConversionWarning,
    DocumentSource,
    DocumentStatistics,
    FontStatistics,
    PageInput,
    PageLayout,
    PageResult,
    WarningCode,
)
from docstruct.pipeline.stage_assemble import DocumentAssembler
from docstruct.pipeline.stage_classify import (
    StructureClassifier,
    body_column_width,
    compute_indent_unit,
    role_histogram,
)
from docstruct.pipeline.stage_extract import load_pdf
from docstruct.pipeline.stage_fonts import FontAnalyzer
from docstruct.pipeline.stage_graphics import GraphicsAnalyzer
from docstruct.pipeline.stage_lines import LineAssembler, validate_words
from docstruct.pipeline.stage_table import TableBuilder

logger = logging.getLogger(__name__)


def process_page(
    layout: PageLayout,
    statistics: DocumentStatistics,
    config: Settings,
) -> PageResult:
    """Run pass 2 for one page.

    Args:
        layout: Pass-1 output of the page.
        statistics: Frozen document statistics.
        config: Thresholds.

    Returns:
        PageResult with final elements and every warning of the page.
    """
    elements, warnings = StructureClassifier(config).classify(layout, statistics)
    elements, table_warnings = TableBuilder(config).build(
        elements, layout.graphics.regions, layout.page_number
    )
    elements = DocumentAssembler().assemble(elements)

    return PageResult(
        page_number=layout.page_number,
        elements=elements,
        warnings=list(layout.warnings) + warnings + table_warnings,
    )


def _process_page_worker(args: tuple) -> PageResult:
    """Worker function for parallel page processing.

    Args:
        args: Tuple of (layout, statistics, config)
    """
    layout, statistics, config = args
    return process_page(layout, statistics, config)


class DocumentConverter:
    """Converts page inputs into a structured document."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        max_workers: Optional[int] = None,
    ):
        """Initialize converter.

        Args:
            config: Thresholds for every stage (default: global settings).
            max_workers: Pass-2 worker processes (default from config).
        """
        self.config = config or settings
        self.max_workers = max_workers or self.config.max_workers

        self.line_assembler = LineAssembler(
            vertical_tolerance_factor=self.config.vertical_tolerance_factor,
            horizontal_merge_factor=self.config.horizontal_merge_factor,
            column_break_factor=self.config.column_break_factor,
        )
        self.graphics_analyzer = GraphicsAnalyzer(
            cluster_distance=self.config.cluster_distance,
            boundary_tolerance=self.config.boundary_tolerance,
            min_cell_size=self.config.min_cell_size,
            rule_thickness=self.config.rule_thickness,
        )
        self.font_analyzer = FontAnalyzer(size_tolerance=self.config.size_cluster_tolerance)

    def convert_file(self, pdf_path: Path, deadline: Optional[float] = None) -> ConversionResult:
        """Extract and convert a PDF file.

        Args:
            pdf_path: Path to the PDF.
            deadline: Optional wall-clock budget in seconds for pass 2.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the document is encrypted.
        """
        source, pages = load_pdf(pdf_path)
        return self.convert_pages(pages, deadline=deadline, source=source)

    def convert_pages(
        self,
        pages: list[PageInput],
        deadline: Optional[float] = None,
        source: Optional[DocumentSource] = None,
    ) -> ConversionResult:
        """Convert already extracted pages.

        Args:
            pages: Page inputs in any order.
            deadline: Optional wall-clock budget in seconds for pass 2.
            source: Provenance to attach to the result.

        Returns:
            ConversionResult with pages in page order.
        """
        layouts = [self.prepare_page(p) for p in sorted(pages, key=lambda p: p.page_number)]
        statistics, warnings = self.compute_statistics(layouts)

        results, abandoned, failed = self._run_pass_two(layouts, statistics, deadline)
        for page_number in abandoned:
            logger.warning("Page %d abandoned: deadline exceeded", page_number)
            warnings.append(
                ConversionWarning(
                    code=WarningCode.PAGE_ABANDONED,
                    message=f"Page {page_number} not finished before the deadline",
                    page_number=page_number,
                )
            )
        for page_number, error in failed.items():
            warnings.append(
                ConversionWarning(
                    code=WarningCode.PAGE_FAILED,
                    message=f"Page {page_number} could not be analyzed: {error}",
                    page_number=page_number,
                )
            )

        result = ConversionResult(
            source=source,
            pages=results,
            statistics=statistics,
            warnings=warnings,
            abandoned_pages=abandoned,
            failed_pages=sorted(failed),
        )
        logger.info(
            "Converted %d pages (%d abandoned, %d failed): %s, %d warnings",
            len(results),
            len(abandoned),
            len(failed),
            dict(role_histogram(result.elements)),
            len(result.all_warnings),
        )
        return result

    def prepare_page(self, page: PageInput) -> PageLayout:
        """Run pass 1 for one page."""
        words, warnings = validate_words(page.words, page.page_number)
        lines = self.line_assembler.assemble(words, page.page_number)
        graphics = self.graphics_analyzer.analyze(page.primitives, lines, page.page_number)
        return PageLayout(
            page_number=page.page_number,
            width=page.width,
            height=page.height,
            lines=tuple(lines),
            graphics=graphics,
            warnings=tuple(warnings) + graphics.warnings,
        )

    def compute_statistics(
        self,
        layouts: list[PageLayout],
    ) -> tuple[DocumentStatistics, list[ConversionWarning]]:
        """Build the frozen document statistics from every page."""
        warnings: list[ConversionWarning] = []
        try:
            fonts = self.font_analyzer.analyze(w for layout in layouts for w in layout.words)
        except StatisticsUnavailableError as e:
            logger.warning("Font statistics unavailable: %s", e)
            fonts = FontStatistics()
            warnings.append(ConversionWarning(code=e.code, message=str(e)))

        indent_unit = compute_indent_unit(
            [layout.text_lines for layout in layouts],
            self.config.margin_tolerance,
        )
        widths = [body_column_width(layout.text_lines, fonts) for layout in layouts]
        body_width = max((w for w in widths if w), default=None)
        return (
            DocumentStatistics(fonts=fonts, indent_unit=indent_unit, body_width=body_width),
            warnings,
        )

    def _run_pass_two(
        self,
        layouts: list[PageLayout],
        statistics: DocumentStatistics,
        deadline: Optional[float],
    ) -> tuple[list[PageResult], list[int], dict[int, str]]:
        """Run pass 2 over every page.

        Returns:
            Tuple of (finished pages, abandoned page numbers, failed page
            numbers mapped to their error).
        """
        end = None if deadline is None else time.monotonic() + deadline

        if self.max_workers > 1 and len(layouts) > 1:
            return self._run_parallel(layouts, statistics, end)

        results = []
        abandoned = []
        failed: dict[int, str] = {}
        for layout in layouts:
            if end is not None and time.monotonic() >= end:
                abandoned.append(layout.page_number)
                continue
            try:
                results.append(process_page(layout, statistics, self.config))
            except Exception as e:
                logger.exception("Page %d failed", layout.page_number)
                failed[layout.page_number] = _describe(e)
        return results, abandoned, failed

    def _run_parallel(
        self,
        layouts: list[PageLayout],
        statistics: DocumentStatistics,
        end: Optional[float],
    ) -> tuple[list[PageResult], list[int], dict[int, str]]:
        """Process pages in parallel using ProcessPoolExecutor."""
        executor = ProcessPoolExecutor(max_workers=self.max_workers)
        finished: dict[int, PageResult] = {}
        failed: dict[int, str] = {}
        try:
            futures = {
                executor.submit(_process_page_worker, (layout, statistics, self.config)): layout.page_number
                for layout in layouts
            }
            timeout = None if end is None else max(0.0, end - time.monotonic())
            done, _ = wait(futures, timeout=timeout)
            for future in done:
                page_number = futures[future]
                error = future.exception()
                if error is not None:
                    logger.error("Page %d failed: %s", page_number, error)
                    failed[page_number] = _describe(error)
                else:
                    finished[page_number] = future.result()
        finally:
            # Unstarted pages are cancelled; running ones are left to finish unobserved
            executor.shutdown(wait=end is None, cancel_futures=True)

        results = [finished[layout.page_number] for layout in layouts if layout.page_number in finished]
        abandoned = [
            layout.page_number
            for layout in layouts
            if layout.page_number not in finished and layout.page_number not in failed
        ]
        return results, abandoned, dict(sorted(failed.items()))


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"
