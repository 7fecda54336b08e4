"""Word and line IR models for extracted page text."""

import math
from typing import Optional

from pydantic import Field

from .base import BaseIRModel, BoundingBox


class Word(BaseIRModel):
    """Single word as delivered by the extraction adapter. Immutable."""

    text: str
    bbox: BoundingBox
    font_name: str = Field(default="", description="PostScript font name, may carry a subset tag")
    font_size: Optional[float] = Field(None, description="Nominal font size; None when unknown")
    index: int = Field(..., ge=0, description="Position in the page input, used as identity")

    @property
    def has_font_data(self) -> bool:
        """Check whether the word carries a usable font size."""
        return (
            self.font_size is not None
            and math.isfinite(self.font_size)
            and self.font_size > 0
        )

    @property
    def size(self) -> float:
        """Font size, falling back to the box height when unknown."""
        if self.has_font_data:
            return self.font_size
        return self.bbox.height


class TextRun(BaseIRModel):
    """Words of one line between column breaks."""

    words: tuple[Word, ...]
    joiners: tuple[str, ...] = Field(
        default=(), description="Separator between words[i] and words[i + 1]"
    )

    @property
    def text(self) -> str:
        parts = [self.words[0].text] if self.words else []
        for joiner, word in zip(self.joiners, self.words[1:]):
            parts.append(joiner)
            parts.append(word.text)
        return "".join(parts)

    @property
    def bbox(self) -> BoundingBox:
        return BoundingBox.enclosing([w.bbox for w in self.words])


class Line(BaseIRModel):
    """
    Visual line of words sharing a vertical band.

    Created by the line assembler and never mutated afterwards. Font size
    and name are the modes over the constituent words.
    """

    words: tuple[Word, ...]
    runs: tuple[TextRun, ...]
    bbox: BoundingBox
    font_size: Optional[float] = Field(None, description="Dominant font size; None without font data")
    font_name: str = ""
    page_number: int = Field(..., ge=1)
    index: int = Field(..., ge=0, description="Reading-order position on the page")
    column_gaps: tuple[tuple[float, float], ...] = Field(
        default=(), description="(start, end) x-intervals of gaps wide enough to be column breaks"
    )

    @property
    def text(self) -> str:
        return " ".join(run.text for run in self.runs)

    @property
    def has_font_data(self) -> bool:
        return self.font_size is not None

    @property
    def size(self) -> float:
        """Dominant font size, falling back to the line height."""
        if self.font_size is not None:
            return self.font_size
        return self.bbox.height

    @property
    def is_single_run(self) -> bool:
        return len(self.runs) == 1

    @property
    def char_count(self) -> int:
        return sum(len(w.text) for w in self.words)

    def text_of(self, indices: set[int]) -> str:
        """Text of a subset of this line's words, keeping in-run joiners.

        Args:
            indices: Word indices to include.

        Returns:
            Selected words joined by their original separators, with a
            single space across run boundaries or skipped words.
        """
        parts: list[str] = []
        for run in self.runs:
            previous_kept = False
            for i, word in enumerate(run.words):
                if word.index not in indices:
                    previous_kept = False
                    continue
                if parts:
                    parts.append(run.joiners[i - 1] if previous_kept else " ")
                parts.append(word.text)
                previous_kept = True
        return "".join(parts)
