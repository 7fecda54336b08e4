"""Line Assembly Stage - Group words into visual lines.

Words share a line when their vertical overlap with the line's band is
large relative to the smaller font size. Within a line, inter-word gaps
decide the separator:
- gap < size * horizontal_merge_factor: no separator (kerned glyph runs)
- gap >= size * horizontal_merge_factor: a single space
- gap >= size * column_break_factor: a column break, starting a new run

Every valid word ends up in exactly one line.
"""

import logging
from collections import Counter
from typing import Optional

from docstruct.config import settings
from docstruct.errors import MalformedInputError
from docstruct.models import (
    BoundingBox,
    ConversionWarning,
    Line,
    TextRun,
    Word,
)

logger = logging.getLogger(__name__)


def validate_word(word: Word) -> Word:
    """Check that a word's geometry is usable.

    Raises:
        MalformedInputError: On non-finite or inverted coordinates.
    """
    if not word.bbox.is_finite:
        raise MalformedInputError(f"Word {word.index} has non-finite coordinates")
    if word.bbox.is_inverted:
        raise MalformedInputError(f"Word {word.index} has an inverted bounding box")
    return word


def validate_words(
    words: list[Word],
    page_number: int,
) -> tuple[list[Word], list[ConversionWarning]]:
    """Drop malformed words, recording one warning per dropped word.

    Args:
        words: Words as delivered by the adapter.
        page_number: Page the words belong to.

    Returns:
        Tuple of (valid words, warnings).
    """
    valid = []
    warnings = []
    for word in words:
        try:
            valid.append(validate_word(word))
        except MalformedInputError as e:
            logger.warning("Page %d: skipping word: %s", page_number, e)
            warnings.append(
                ConversionWarning(
                    code=e.code,
                    message=str(e),
                    page_number=page_number,
                    detail={"word_index": word.index, "text": word.text},
                )
            )
    return valid, warnings


class _Band:
    """Vertical band of a line under construction."""

    def __init__(self, word: Word):
        self.y0 = word.bbox.y0
        self.y1 = word.bbox.y1
        self.min_size = word.size
        self.words = [word]

    def overlap(self, word: Word) -> float:
        return min(self.y1, word.bbox.y1) - max(self.y0, word.bbox.y0)

    def add(self, word: Word) -> None:
        self.y0 = min(self.y0, word.bbox.y0)
        self.y1 = max(self.y1, word.bbox.y1)
        self.min_size = min(self.min_size, word.size)
        self.words.append(word)


class LineAssembler:
    """Assembles words of one page into reading-ordered lines."""

    def __init__(
        self,
        vertical_tolerance_factor: Optional[float] = None,
        horizontal_merge_factor: Optional[float] = None,
        column_break_factor: Optional[float] = None,
    ):
        """Initialize line assembler.

        Args:
            vertical_tolerance_factor: k1, overlap needed as a fraction of
                the smaller font size (default from settings).
            horizontal_merge_factor: k2, gap below which words join without
                a space (default from settings).
            column_break_factor: Gap, as a multiple of font size, that splits
                a line into runs (default from settings).
        """
        self.vertical_tolerance_factor = (
            vertical_tolerance_factor or settings.vertical_tolerance_factor
        )
        self.horizontal_merge_factor = horizontal_merge_factor or settings.horizontal_merge_factor
        self.column_break_factor = column_break_factor or settings.column_break_factor

    def assemble(self, words: list[Word], page_number: int) -> list[Line]:
        """Group words into lines.

        Args:
            words: Valid words of one page, in any order.
            page_number: 1-indexed page number.

        Returns:
            Lines sorted by (y0, x0), each with words ordered by x0.
        """
        bands: list[_Band] = []

        # Top-to-bottom so each band is seeded by its highest word
        for word in sorted(words, key=lambda w: (w.bbox.y0, w.bbox.x0, w.index)):
            best: Optional[_Band] = None
            best_overlap = 0.0
            for band in bands:
                overlap = band.overlap(word)
                threshold = min(band.min_size, word.size) * self.vertical_tolerance_factor
                if overlap > threshold and overlap > best_overlap:
                    best = band
                    best_overlap = overlap
            if best is None:
                bands.append(_Band(word))
            else:
                best.add(word)

        drafts = [self._build_line(band.words, page_number) for band in bands]
        drafts.sort(key=lambda line: (line.bbox.y0, line.bbox.x0))
        lines = [
            line.model_copy(update={"index": i}) for i, line in enumerate(drafts)
        ]
        logger.debug("Page %d: %d words -> %d lines", page_number, len(words), len(lines))
        return lines

    def _build_line(self, words: list[Word], page_number: int) -> Line:
        ordered = sorted(words, key=lambda w: (w.bbox.x0, w.index))

        runs: list[TextRun] = []
        run_words = [ordered[0]]
        joiners: list[str] = []
        gaps: list[tuple[float, float]] = []

        for prev, word in zip(ordered, ordered[1:]):
            gap = word.bbox.x0 - prev.bbox.x1
            size = max(prev.size, word.size)
            if gap >= size * self.column_break_factor:
                runs.append(TextRun(words=tuple(run_words), joiners=tuple(joiners)))
                gaps.append((prev.bbox.x1, word.bbox.x0))
                run_words = [word]
                joiners = []
                continue
            joiners.append("" if gap < size * self.horizontal_merge_factor else " ")
            run_words.append(word)
        runs.append(TextRun(words=tuple(run_words), joiners=tuple(joiners)))

        return Line(
            words=tuple(ordered),
            runs=tuple(runs),
            bbox=BoundingBox.enclosing([w.bbox for w in ordered]),
            font_size=dominant_font_size(ordered),
            font_name=dominant_font_name(ordered),
            page_number=page_number,
            index=0,
            column_gaps=tuple(gaps),
        )


def dominant_font_size(words: list[Word]) -> Optional[float]:
    """Mode of the words' font sizes; ties go to more characters, then larger size."""
    counts: Counter = Counter()
    chars: Counter = Counter()
    for word in words:
        if word.has_font_data:
            size = round(word.font_size, 1)
            counts[size] += 1
            chars[size] += len(word.text)
    if not counts:
        return None
    return max(counts, key=lambda s: (counts[s], chars[s], s))


def dominant_font_name(words: list[Word]) -> str:
    """Mode of the words' font names; ties go to more characters, then name order."""
    counts: Counter = Counter()
    chars: Counter = Counter()
    for word in words:
        if word.font_name:
            counts[word.font_name] += 1
            chars[word.font_name] += len(word.text)
    if not counts:
        return ""
    return max(counts, key=lambda n: (counts[n], chars[n], n))
