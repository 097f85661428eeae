# errors.py — Error taxonomy for ingestion, storage and collaborators
"""
errors.py — Analytics Error Taxonomy

Only ingestion-time structural problems are raised to callers.
Analysis functions degrade to empty results instead of raising, and
collaborator failures travel inside CollaboratorResult values.
"""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base exception for the analytics core."""
    pass


class EmptyDatasetError(AnalyticsError):
    """Raised when an upload contains no data rows."""
    pass


class UnsupportedFileTypeError(AnalyticsError):
    """Raised when an upload is not a tabular (CSV) file."""
    pass


class FileTooLargeError(AnalyticsError):
    """Raised when an upload exceeds the size limit."""
    pass


class FileReadError(AnalyticsError):
    """Raised when an upload cannot be read or decoded."""
    pass


class DatasetNotFoundError(AnalyticsError):
    """Raised when a dataset id is unknown to the store."""
    pass


class CollaboratorUnavailable(AnalyticsError):
    """An external collaborator (LLM, backend) failed or is not configured."""
    pass


# Names used by the dashboard's error catalogue
EmptyInputError = EmptyDatasetError
UnsupportedFileType = UnsupportedFileTypeError
