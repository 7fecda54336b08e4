"""Pipeline stages for layout structure analysis.

Deterministic Stages (geometry only):
1. stage_extract - PDF words and vector graphics (PyMuPDF)
2. stage_fonts - Corpus-wide font size statistics
3. stage_lines - Words to lines and text runs
4. stage_graphics - Rules to table regions
5. stage_classify - Line roles via an explicit state machine
6. stage_table - Table grids, spans, absorption, alignment
7. stage_assemble - Table rows to table nodes
8. stage_render - Markdown output

The converter runs stages 2-4 over every page (pass 1), freezes the
document statistics, then runs stages 5-7 per page (pass 2).
"""

from .converter import DocumentConverter, process_page
from .stage_assemble import DocumentAssembler
from .stage_classify import (
    CLASSIFICATION_RULES,
    TRANSITIONS,
    LineRole,
    StructureClassifier,
    compute_indent_unit,
)
from .stage_extract import compute_file_hash, load_pdf
from .stage_fonts import FontAnalyzer, FontStyle, classify_font_style
from .stage_graphics import GraphicsAnalyzer
from .stage_lines import LineAssembler, validate_words
from .stage_render import MarkdownRenderer
from .stage_table import TableBuilder

__all__ = [
    # Extraction
    "load_pdf",
    "compute_file_hash",
    # Fonts
    "FontAnalyzer",
    "FontStyle",
    "classify_font_style",
    # Lines
    "LineAssembler",
    "validate_words",
    # Graphics
    "GraphicsAnalyzer",
    # Classification
    "StructureClassifier",
    "LineRole",
    "CLASSIFICATION_RULES",
    "TRANSITIONS",
    "compute_indent_unit",
    # Tables
    "TableBuilder",
    # Assembly
    "DocumentAssembler",
    # Rendering
    "MarkdownRenderer",
    # Orchestration
    "DocumentConverter",
    "process_page",
]
