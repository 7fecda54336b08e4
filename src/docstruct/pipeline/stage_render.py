"""Markdown Rendering Stage - Serialize the element tree.

Output conventions:
- Headings: "#" per level, emphasis stripped
- List items: "N." or "-", indented two spaces per depth step within a list
- Block quotes: ">" per depth
- Dividers: "---"
- Code blocks: fenced with "```", relative indentation kept
- Tables: pipe tables; the first row is the header, emphasis kept in cells
- Emphasis: "**", "*" and "***" around runs of words sharing a style
"""

import logging
from typing import Optional

from docstruct.models import (
    LINE_BREAK,
    CodeBlock,
    ConversionResult,
    DocumentElement,
    ElementKind,
    FontStatistics,
    Line,
    ListItem,
    TableCell,
    Word,
)
from docstruct.pipeline.stage_fonts import FontStyle, emphasis_style

logger = logging.getLogger(__name__)

EMPHASIS_MARKERS = {
    FontStyle.REGULAR: "",
    FontStyle.BOLD: "**",
    FontStyle.ITALIC: "*",
    FontStyle.BOLD_ITALIC: "***",
}

LIST_INDENT = "  "

CODE_FENCE = "```"


class MarkdownRenderer:
    """Renders document elements as Markdown text."""

    def __init__(self, fonts: Optional[FontStatistics] = None):
        """Initialize renderer.

        Args:
            fonts: Document font statistics; emphasis is relative to its
                dominant font. Without it no emphasis is emitted.
        """
        self.fonts = fonts

    def render(self, result: ConversionResult) -> str:
        """Render a whole conversion, pages in order."""
        if self.fonts is None:
            self.fonts = result.statistics.fonts
        return self.render_elements(result.elements)

    def render_elements(self, elements: list[DocumentElement]) -> str:
        """Render elements separated by blank lines."""
        blocks = []
        list_run: list[ListItem] = []
        for element in elements:
            if element.kind == ElementKind.LIST_ITEM:
                list_run.append(element)
                continue
            if list_run:
                blocks.append(self._render_list(list_run))
                list_run = []
            block = self.render_element(element)
            if block:
                blocks.append(block)
        if list_run:
            blocks.append(self._render_list(list_run))
        return "\n\n".join(blocks) + ("\n" if blocks else "")

    def render_element(self, element: DocumentElement) -> str:
        """Render one element (list items render without run context)."""
        if element.kind == ElementKind.HEADING:
            return "#" * element.level + " " + element.text
        if element.kind == ElementKind.PARAGRAPH:
            return self._render_lines(element.lines)
        if element.kind == ElementKind.LIST_ITEM:
            return self._render_list([element])
        if element.kind == ElementKind.BLOCK_QUOTE:
            return ">" * element.depth + " " + self._render_lines(element.lines)
        if element.kind == ElementKind.DIVIDER:
            return "---"
        if element.kind == ElementKind.CODE_BLOCK:
            return self._render_code(element)
        if element.kind == ElementKind.TABLE:
            return element.to_markdown(self._render_cell)
        if element.kind == ElementKind.TABLE_ROW:
            return "| " + " | ".join(c.text.replace("|", "\\|") for c in element.cells) + " |"
        logger.warning("Unknown element kind %s", element.kind)
        return ""

    def _render_list(self, items: list[ListItem]) -> str:
        base = min(item.depth for item in items)
        out = []
        for item in items:
            indent = LIST_INDENT * (item.depth - base)
            marker = f"{item.ordinal}." if item.ordinal is not None else "-"
            out.append(f"{indent}{marker} {self._list_content(item)}")
        return "\n".join(out)

    def _list_content(self, item: ListItem) -> str:
        """Item text without its marker glyphs."""
        first, *rest = item.lines
        words = list(first.words)
        if words and item.marker and words[0].text.startswith(item.marker):
            remainder = words[0].text[len(item.marker):]
            if remainder:
                words[0] = words[0].model_copy(update={"text": remainder})
            else:
                words = words[1:]
        parts = [self._render_words(first, words)]
        parts.extend(self._render_line(line) for line in rest)
        return " ".join(p for p in parts if p)

    def _render_lines(self, lines: tuple[Line, ...]) -> str:
        return " ".join(self._render_line(line) for line in lines)

    def _render_line(self, line: Line) -> str:
        return self._render_words(line, list(line.words))

    def _render_words(self, line: Line, words: list[Word]) -> str:
        """Join words with the line's separators, wrapping styled runs in markers."""
        separators = _separators(line)
        pieces: list[list] = []
        for word in words:
            sep = separators.get(word.index, " ") if pieces else ""
            _add_piece(pieces, self._style(word), sep, word.text)
        return _join_pieces(pieces)

    def _render_cell(self, cell: TableCell) -> str:
        """Cell content with emphasis; segments keep their line-break marker.

        Words are located in order inside each segment's text so the
        separators recorded at line assembly survive.
        """
        styled = [(word, self._style(word)) for word in cell.words]
        if all(style == FontStyle.REGULAR for _, style in styled):
            return cell.text

        rendered = []
        for segment in cell.segments:
            pieces: list[list] = []
            pos = 0
            while styled:
                word, style = styled[0]
                at = segment.find(word.text, pos)
                if at < 0:
                    break
                _add_piece(pieces, style, segment[pos:at], word.text)
                styled.pop(0)
                pos = at + len(word.text)
            rendered.append(_join_pieces(pieces) + segment[pos:])
        return LINE_BREAK.join(r for r in rendered if r)

    def _render_code(self, block: CodeBlock) -> str:
        """Fenced block; indentation from each line's offset in average glyph widths."""
        glyph_widths = [w.bbox.width / len(w.text) for w in block.words if w.text]
        glyph = sum(glyph_widths) / len(glyph_widths) if glyph_widths else 0.0
        left = min(line.bbox.x0 for line in block.lines)
        out = []
        for line in block.lines:
            indent = round((line.bbox.x0 - left) / glyph) if glyph > 0 else 0
            out.append(" " * indent + line.text)
        return CODE_FENCE + "\n" + "\n".join(out) + "\n" + CODE_FENCE

    def _style(self, word: Word) -> FontStyle:
        if self.fonts is None or not self.fonts.dominant_font_name or not word.font_name:
            return FontStyle.REGULAR
        return emphasis_style(word.font_name, self.fonts.dominant_font_name)


def _separators(line: Line) -> dict[int, str]:
    """Separator preceding each word of a line, keyed by word index."""
    separators = {}
    for run in line.runs:
        for joiner, word in zip(run.joiners, run.words[1:]):
            separators[word.index] = joiner
    return separators


def _add_piece(pieces: list[list], style: FontStyle, sep: str, text: str) -> None:
    """Extend the last piece when the style repeats, else start a new one."""
    if pieces and pieces[-1][0] == style:
        pieces[-1][2] += sep + text
    else:
        pieces.append([style, sep, text])


def _join_pieces(pieces: list[list]) -> str:
    # Each piece is [style, leading separator, text]
    return "".join(
        sep + EMPHASIS_MARKERS[style] + text + EMPHASIS_MARKERS[style]
        for style, sep, text in pieces
    )
