"""Font Analysis Stage - Corpus-wide font size statistics.

Runs once per document, after every page's words have been validated.
Heading levels come only from relative size:
1. Round sizes to 0.1 and merge neighbours within the cluster tolerance
2. Weigh clusters by character count; the heaviest is body text
3. Number the clusters larger than body 1..N (capped at 6), largest first

Bold and italic are read from style tokens in the font name, never from
the text itself.
"""

import logging
import re
from collections import Counter
from enum import Enum
from typing import Iterable, Optional

from docstruct.config import settings
from docstruct.errors import StatisticsUnavailableError
from docstruct.models import FontStatistics, SizeCluster, Word

logger = logging.getLogger(__name__)

MAX_HEADING_LEVEL = 6

# Subset fonts carry a six-letter tag, e.g. "ABCDEF+Helvetica-Bold"
SUBSET_PREFIX = re.compile(r"^[A-Z]{6}\+")

BOLD_PATTERNS = [
    r"bold",
    r"black",
    r"heavy",
    r"semibold",
    r"demibold",
    r"extrabold",
    r"ultrabold",
    r"(?<!\d)[6-9]00(?!\d)",
    r"\bw[6-9]\b",
]

ITALIC_PATTERNS = [
    r"italic",
    r"oblique",
    r"slanted",
    r"inclined",
    r"kursiv",
]

# "MinionPro-It", "MinionPro-BoldIt"; case-sensitive so "-Italic" is not needed here
ITALIC_SUFFIX = re.compile(r"-\w*It$")

# Fixed-pitch families; lines set in them are code
MONOSPACE_PATTERNS = [
    r"mono(?!type)",
    r"courier",
    r"consolas",
    r"menlo",
    r"inconsolata",
]


class FontStyle(str, Enum):
    """Emphasis style derived from a font name."""

    REGULAR = "regular"
    BOLD = "bold"
    ITALIC = "italic"
    BOLD_ITALIC = "bold_italic"

    @property
    def is_bold(self) -> bool:
        return self in (FontStyle.BOLD, FontStyle.BOLD_ITALIC)

    @property
    def is_italic(self) -> bool:
        return self in (FontStyle.ITALIC, FontStyle.BOLD_ITALIC)

    @classmethod
    def from_flags(cls, bold: bool, italic: bool) -> "FontStyle":
        if bold and italic:
            return cls.BOLD_ITALIC
        if bold:
            return cls.BOLD
        if italic:
            return cls.ITALIC
        return cls.REGULAR


_bold_re = re.compile("|".join(BOLD_PATTERNS), re.IGNORECASE)
_italic_re = re.compile("|".join(ITALIC_PATTERNS), re.IGNORECASE)
_monospace_re = re.compile("|".join(MONOSPACE_PATTERNS), re.IGNORECASE)


def strip_subset_prefix(font_name: str) -> str:
    """Remove the subset tag from an embedded font name."""
    return SUBSET_PREFIX.sub("", font_name or "")


def classify_font_style(font_name: str) -> FontStyle:
    """Classify a font name as regular, bold, italic or bold-italic.

    Args:
        font_name: PostScript font name, optionally with a subset tag.

    Returns:
        FontStyle read from the name's style tokens.
    """
    name = strip_subset_prefix(font_name)
    bold = bool(_bold_re.search(name))
    italic = bool(_italic_re.search(name) or ITALIC_SUFFIX.search(name))
    return FontStyle.from_flags(bold, italic)


def is_monospace(font_name: str) -> bool:
    """Check whether a font name names a fixed-pitch family."""
    return bool(_monospace_re.search(strip_subset_prefix(font_name)))


def emphasis_style(font_name: str, dominant_font_name: str) -> FontStyle:
    """Style a word should be emphasized with, relative to the dominant font.

    Only flags the word has and the dominant font lacks are kept, so
    body text set in a bold face is not wrapped in bold markers.
    """
    word_style = classify_font_style(font_name)
    base_style = classify_font_style(dominant_font_name)
    return FontStyle.from_flags(
        word_style.is_bold and not base_style.is_bold,
        word_style.is_italic and not base_style.is_italic,
    )


class FontAnalyzer:
    """Builds document-wide FontStatistics from word font data."""

    def __init__(
        self,
        size_tolerance: Optional[float] = None,
    ):
        """Initialize font analyzer.

        Args:
            size_tolerance: Sizes this close share a cluster (default from settings).
        """
        self.size_tolerance = size_tolerance or settings.size_cluster_tolerance

    def analyze(self, words: Iterable[Word]) -> FontStatistics:
        """Compute size clusters, body size and heading levels.

        Args:
            words: Every valid word of the document.

        Returns:
            Immutable FontStatistics.

        Raises:
            StatisticsUnavailableError: If no word carries a font size.
        """
        size_chars: Counter = Counter()
        size_words: Counter = Counter()
        font_chars: Counter = Counter()

        for word in words:
            if not word.has_font_data:
                continue
            size = round(word.font_size, 1)
            size_chars[size] += len(word.text)
            size_words[size] += 1
            if word.font_name:
                font_chars[word.font_name] += len(word.text)

        if not size_words:
            raise StatisticsUnavailableError("No word carries a usable font size")

        groups = self._group_sizes(sorted(size_words))
        clusters = [self._make_cluster(g, size_chars, size_words) for g in groups]

        # Body: heaviest by characters, then by word count, then the smaller size
        body = max(clusters, key=lambda c: (c.char_weight, c.word_count, -c.size))

        larger = sorted(
            (c for c in clusters if c.size > body.size),
            key=lambda c: c.size,
            reverse=True,
        )
        levels = {
            c.size: min(i + 1, MAX_HEADING_LEVEL) for i, c in enumerate(larger)
        }
        clusters = [
            c.model_copy(update={"level": levels.get(c.size)}) for c in clusters
        ]
        clusters.sort(key=lambda c: c.size, reverse=True)

        dominant_font = ""
        if font_chars:
            dominant_font = max(font_chars.items(), key=lambda kv: (kv[1], kv[0]))[0]

        stats = FontStatistics(
            clusters=tuple(clusters),
            body_size=body.size,
            dominant_font_name=dominant_font,
        )
        logger.debug(
            "Font statistics: body=%.1f, %d clusters, %d heading levels, font=%s",
            body.size,
            len(clusters),
            len(stats.heading_levels),
            dominant_font or "?",
        )
        return stats

    def _group_sizes(self, sizes: list[float]) -> list[list[float]]:
        """Chain sorted sizes into groups of neighbours within tolerance."""
        groups: list[list[float]] = []
        for size in sizes:
            if groups and size - groups[-1][-1] <= self.size_tolerance:
                groups[-1].append(size)
            else:
                groups.append([size])
        return groups

    def _make_cluster(
        self,
        sizes: list[float],
        size_chars: Counter,
        size_words: Counter,
    ) -> SizeCluster:
        # Representative: heaviest member, ties to more words then smaller size
        representative = max(
            sizes, key=lambda s: (size_chars[s], size_words[s], -s)
        )
        return SizeCluster(
            size=representative,
            sizes=tuple(sizes),
            char_weight=sum(size_chars[s] for s in sizes),
            word_count=sum(size_words[s] for s in sizes),
        )
