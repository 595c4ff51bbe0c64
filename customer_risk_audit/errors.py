"""Exceptions raised at the boundaries of a segmentation run."""


class SegmentationError(Exception):
    """Base class for failures that abort a whole segmentation run."""


class DataFetchError(SegmentationError):
    """The metrics store could not be read, or returned malformed data."""


class AnalysisError(SegmentationError):
    """An unexpected failure inside a scoring or aggregation stage."""
