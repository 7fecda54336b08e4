"""Corpus-wide statistics models, built once in pass 1 and read-only after."""

from typing import Optional

from pydantic import Field

from .base import BaseIRModel


class SizeCluster(BaseIRModel):
    """Font sizes close enough to be treated as one typographic size."""

    size: float = Field(..., gt=0, description="Representative (heaviest) size")
    sizes: tuple[float, ...] = Field(..., description="Member sizes, rounded to 0.1")
    char_weight: int = Field(..., ge=0, description="Total characters set in this cluster")
    word_count: int = Field(..., ge=0)
    level: Optional[int] = Field(None, ge=1, le=6, description="Heading level; None for body and smaller")


class FontStatistics(BaseIRModel):
    """
    Font size distribution and the heading levels derived from it.

    An unavailable instance (no sizes seen) maps every size to body text.
    """

    clusters: tuple[SizeCluster, ...] = ()
    body_size: Optional[float] = None
    dominant_font_name: str = ""

    @property
    def is_available(self) -> bool:
        return self.body_size is not None

    @property
    def heading_levels(self) -> dict[int, float]:
        """Largest representative size for each heading level."""
        levels: dict[int, float] = {}
        for cluster in self.clusters:
            if cluster.level is not None and cluster.level not in levels:
                levels[cluster.level] = cluster.size
        return levels

    def cluster_for(self, size: Optional[float]) -> Optional[SizeCluster]:
        """Find the cluster a size belongs to, or the nearest one."""
        if size is None or not self.clusters:
            return None
        rounded = round(size, 1)
        return min(
            self.clusters,
            key=lambda c: (min(abs(s - rounded) for s in c.sizes), c.size),
        )

    def level_for(self, size: Optional[float]) -> Optional[int]:
        """Heading level for a font size; None means body text."""
        if not self.is_available:
            return None
        cluster = self.cluster_for(size)
        if cluster is None:
            return None
        return cluster.level


class DocumentStatistics(BaseIRModel):
    """Everything pass 2 needs from the whole document."""

    fonts: FontStatistics
    indent_unit: Optional[float] = Field(
        None, gt=0, description="Smallest recurring left-margin delta; None when nothing is indented"
    )
    body_width: Optional[float] = Field(
        None, gt=0, description="Widest extent of body-size lines on any page; None without body text"
    )
