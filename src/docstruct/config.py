"""Configuration management for the layout structure pipeline."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every option is a numeric multiplier or distance in page geometry units.
    None of them may reference document content.
    """

    # Line assembly
    vertical_tolerance_factor: float = Field(
        0.5, gt=0, description="k1: min vertical overlap as a fraction of the smaller font size"
    )
    horizontal_merge_factor: float = Field(
        0.1, gt=0, description="k2: gaps below size * k2 join words without a space"
    )
    column_break_factor: float = Field(
        2.0, gt=0, description="Gaps at or above size * factor split a line into runs"
    )

    # Classification
    paragraph_gap_factor: float = Field(
        0.8, gt=0, description="k3: soft-wrap continuation gap as a fraction of font size"
    )
    heading_max_width_ratio: float = Field(
        0.9, gt=0, description="Headings must be narrower than this share of the body column"
    )
    margin_tolerance: float = Field(
        2.0, gt=0, description="Left-margin differences below this are the same margin"
    )
    size_cluster_tolerance: float = Field(
        0.5, gt=0, description="Font sizes closer than this share a size cluster"
    )

    # Graphics and tables
    cluster_distance: float = Field(
        20.0, gt=0, description="Max distance between primitives of one table region"
    )
    boundary_tolerance: float = Field(
        2.0, gt=0, description="Rules closer than this collapse into one boundary"
    )
    min_cell_size: float = Field(
        4.0, gt=0, description="Adjacent boundaries closer than this make a grid ambiguous"
    )
    rule_thickness: float = Field(
        2.0, gt=0, description="Rectangles thinner than this are treated as rules"
    )
    table_absorption_gap_factor: float = Field(
        1.5, gt=0, description="Max gap below a table, as a fraction of font size, for absorption"
    )
    absorption_length_cap: int = Field(
        50, gt=0, description="Paragraphs longer than this are never absorbed into a table"
    )
    alignment_tolerance: float = Field(
        1.0, gt=0, description="Offset variance at or below this counts as flush"
    )

    # Processing
    max_workers: int = Field(1, ge=1)

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "DOCSTRUCT_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
