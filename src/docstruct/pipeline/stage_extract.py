"""PDF Extraction Stage - Read words and vector graphics from a PDF.

Uses PyMuPDF (fitz). This is a thin adapter: no layout decisions are
made here beyond splitting character runs into words on whitespace.
PyMuPDF already reports coordinates with a top-left origin.
"""

import hashlib
import logging
from pathlib import Path

import fitz  # PyMuPDF

from docstruct.models import (
    BoundingBox,
    DocumentSource,
    GraphicsPrimitive,
    PageInput,
    PrimitiveKind,
    Word,
)

logger = logging.getLogger(__name__)


def compute_file_hash(file_path: Path, chunk_size: int = 8192) -> str:
    """Compute SHA-256 hash of a file for provenance."""
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def extract_words(page: fitz.Page) -> list[Word]:
    """Split the page's character spans into words.

    Args:
        page: PyMuPDF page.

    Returns:
        Words with font name and size of their span.
    """
    words: list[Word] = []
    raw = page.get_text("rawdict")

    for block in raw.get("blocks", []):
        # Image blocks (type 1) carry no text
        if block.get("type", 0) != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                chars: list[dict] = []
                for char in span.get("chars", []) + [None]:
                    if char is None or char["c"].isspace():
                        if chars:
                            words.append(_make_word(chars, span, len(words)))
                            chars = []
                        continue
                    chars.append(char)
    return words


def _make_word(chars: list[dict], span: dict, index: int) -> Word:
    x0 = min(c["bbox"][0] for c in chars)
    y0 = min(c["bbox"][1] for c in chars)
    x1 = max(c["bbox"][2] for c in chars)
    y1 = max(c["bbox"][3] for c in chars)
    return Word(
        text="".join(c["c"] for c in chars),
        bbox=BoundingBox(x0=x0, y0=y0, x1=x1, y1=y1),
        font_name=span.get("font", ""),
        font_size=span.get("size"),
        index=index,
    )


def extract_primitives(page: fitz.Page) -> list[GraphicsPrimitive]:
    """Collect line and rectangle primitives from the page's drawings."""
    primitives: list[GraphicsPrimitive] = []
    for path in page.get_drawings():
        width = path.get("width") or 1.0
        for item in path.get("items", []):
            op = item[0]
            if op == "l":
                p1, p2 = item[1], item[2]
                kind = (
                    PrimitiveKind.HORIZONTAL
                    if abs(p2.y - p1.y) <= abs(p2.x - p1.x)
                    else PrimitiveKind.VERTICAL
                )
                primitives.append(
                    GraphicsPrimitive(kind=kind, x0=p1.x, y0=p1.y, x1=p2.x, y1=p2.y, stroke_width=width)
                )
            elif op in ("re", "qu"):
                rect = item[1] if op == "re" else item[1].rect
                primitives.append(
                    GraphicsPrimitive(
                        kind=PrimitiveKind.RECTANGLE,
                        x0=rect.x0,
                        y0=rect.y0,
                        x1=rect.x1,
                        y1=rect.y1,
                        stroke_width=width,
                    )
                )
    return primitives


def extract_page(page: fitz.Page, page_number: int) -> PageInput:
    """Build the PageInput for one PyMuPDF page."""
    return PageInput(
        page_number=page_number,
        width=page.rect.width or None,
        height=page.rect.height or None,
        words=extract_words(page),
        primitives=extract_primitives(page),
    )


def load_pdf(pdf_path: Path) -> tuple[DocumentSource, list[PageInput]]:
    """Read every page of a PDF.

    Args:
        pdf_path: Path to the PDF file.

    Returns:
        Tuple of (DocumentSource, page inputs in page order).

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the document is encrypted.
    """
    pdf_path = Path(pdf_path).resolve()
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF not found: {pdf_path}")

    source_hash = compute_file_hash(pdf_path)

    pdf_doc = fitz.open(str(pdf_path))
    try:
        if pdf_doc.needs_pass or (pdf_doc.metadata or {}).get("encryption"):
            raise ValueError(f"Encrypted PDF not supported: {pdf_path}")
        pages = [extract_page(pdf_doc[i], i + 1) for i in range(len(pdf_doc))]
    finally:
        pdf_doc.close()

    source = DocumentSource(
        source_path=str(pdf_path),
        source_filename=pdf_path.name,
        source_hash=source_hash,
        page_count=len(pages),
    )
    logger.info(
        "Loaded %s: %d pages, %d words",
        source.source_filename,
        source.page_count,
        sum(len(p.words) for p in pages),
    )
    return source, pages
