"""Layout structure pipeline: positioned glyphs to structured documents."""

__version__ = "0.1.0"
