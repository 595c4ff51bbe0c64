"""Customer lifecycle risk and value scoring toolkit."""

from .errors import AnalysisError, DataFetchError, SegmentationError
from .pipeline import AnalysisOptions, SegmentationResult, analyze_customer_segments

__all__ = [
    "AnalysisError",
    "AnalysisOptions",
    "DataFetchError",
    "SegmentationError",
    "SegmentationResult",
    "analyze_customer_segments",
]
