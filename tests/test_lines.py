"""Tests for line assembly stage."""

import math

import pytest

from docstruct.errors import MalformedInputError
from docstruct.models import BoundingBox, Word, WarningCode
from docstruct.pipeline.stage_lines import (
    LineAssembler,
    dominant_font_size,
    validate_word,
    validate_words,
)


class TestValidateWords:
    """Tests for malformed word rejection."""

    def test_valid_word_passes(self, make_word):
        word = make_word("ok")
        assert validate_word(word) is word

    def test_non_finite_rejected(self, make_word):
        """NaN and infinite coordinates are malformed."""
        word = make_word("bad", x0=math.nan)
        with pytest.raises(MalformedInputError):
            validate_word(word)

    def test_inverted_rejected(self, make_word):
        """A box whose far edge precedes its near edge is malformed."""
        word = make_word("bad", x0=50, x1=10)
        with pytest.raises(MalformedInputError):
            validate_word(word)

    def test_skipped_words_recorded(self, make_word):
        """Each dropped word yields one warning."""
        words = [make_word("good", index=0), make_word("bad", y0=math.inf, index=1)]
        valid, warnings = validate_words(words, page_number=3)
        assert [w.text for w in valid] == ["good"]
        assert len(warnings) == 1
        assert warnings[0].code == WarningCode.MALFORMED_INPUT
        assert warnings[0].page_number == 3
        assert warnings[0].detail["word_index"] == 1


class TestLineAssembler:
    """Tests for grouping words into lines."""

    @pytest.fixture
    def assembler(self):
        return LineAssembler(
            vertical_tolerance_factor=0.5,
            horizontal_merge_factor=0.1,
            column_break_factor=2.0,
        )

    def test_words_on_same_baseline_share_line(self, assembler, make_word):
        words = [
            make_word("world", x0=40, y0=100.5, index=1),
            make_word("Hello", x0=10, y0=100, index=0),
        ]
        lines = assembler.assemble(words, page_number=1)
        assert len(lines) == 1
        assert lines[0].text == "Hello world"

    def test_separate_lines_sorted_top_down(self, assembler, make_word):
        words = [
            make_word("second", x0=10, y0=120, index=0),
            make_word("first", x0=10, y0=100, index=1),
        ]
        lines = assembler.assemble(words, page_number=1)
        assert [line.text for line in lines] == ["first", "second"]
        assert [line.index for line in lines] == [0, 1]

    def test_small_overlap_starts_new_line(self, assembler, make_word):
        """Overlap below half the smaller size keeps words apart."""
        words = [
            make_word("upper", x0=10, y0=100, index=0),
            make_word("lower", x0=60, y0=106, index=1),
        ]
        lines = assembler.assemble(words, page_number=1)
        assert len(lines) == 2

    def test_tight_gap_joins_without_space(self, assembler, make_word):
        """Kerned glyph runs merge into one token."""
        words = [
            make_word("foot", x0=10, x1=30, y0=100, index=0),
            make_word("note", x0=30.5, x1=50, y0=100, index=1),
        ]
        lines = assembler.assemble(words, page_number=1)
        assert lines[0].text == "footnote"

    def test_column_break_splits_runs(self, assembler, make_word):
        """A gap of at least twice the size starts a new run and records the gap."""
        words = [
            make_word("left", x0=10, x1=30, y0=100, index=0),
            make_word("right", x0=60, x1=85, y0=100, index=1),
        ]
        lines = assembler.assemble(words, page_number=1)
        line = lines[0]
        assert len(line.runs) == 2
        assert not line.is_single_run
        assert line.column_gaps == ((30, 60),)

    def test_every_word_in_exactly_one_line(self, assembler, page_builder):
        page = page_builder()
        page.line("The quick brown fox", 72, 100)
        page.line("jumps over the lazy dog", 72, 114)
        page.line("Big", 72, 140, size=18)
        lines = assembler.assemble(page.words, page_number=1)
        seen = [w.index for line in lines for w in line.words]
        assert sorted(seen) == list(range(len(page.words)))

    def test_missing_font_size_falls_back_to_height(self, assembler):
        words = [
            Word(text="a", bbox=BoundingBox(x0=0, y0=0, x1=5, y1=10), font_size=None, index=0),
            Word(text="b", bbox=BoundingBox(x0=6, y0=0, x1=11, y1=10), font_size=None, index=1),
        ]
        lines = assembler.assemble(words, page_number=1)
        assert len(lines) == 1
        assert lines[0].font_size is None
        assert not lines[0].has_font_data
        assert lines[0].size == 10

    def test_dominant_size_is_mode(self, make_word):
        words = [
            make_word("a", size=10, index=0),
            make_word("b", size=10, index=1),
            make_word("c", size=12, index=2),
        ]
        assert dominant_font_size(words) == 10

    def test_text_of_subset(self, assembler, make_word):
        """Subsets keep in-run joiners and space across skipped words."""
        words = [
            make_word("foot", x0=10, x1=30, y0=100, index=0),
            make_word("note", x0=30.5, x1=50, y0=100, index=1),
            make_word("here", x0=55, x1=75, y0=100, index=2),
        ]
        line = assembler.assemble(words, page_number=1)[0]
        assert line.text_of({0, 1}) == "footnote"
        assert line.text_of({0, 2}) == "foot here"
