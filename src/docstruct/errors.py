"""Error taxonomy for the layout structure pipeline.

None of these is fatal to a document. Stages raise them at the point of
failure and the enclosing stage degrades the affected page or region,
recording a ConversionWarning with the matching code.
"""

from docstruct.models.base import WarningCode


class LayoutError(Exception):
    """Base class for recoverable layout analysis failures."""

    code: WarningCode = WarningCode.MALFORMED_INPUT


class MalformedInputError(LayoutError):
    """A word or primitive has non-finite or inverted coordinates."""

    code = WarningCode.MALFORMED_INPUT


class AmbiguousTableError(LayoutError):
    """A graphics region cannot be resolved into a consistent grid."""

    code = WarningCode.AMBIGUOUS_TABLE


class StatisticsUnavailableError(LayoutError):
    """Font analysis found no usable font size."""

    code = WarningCode.STATISTICS_UNAVAILABLE
