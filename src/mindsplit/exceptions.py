"""
Error types raised by the MindSplit engine.

Embedding-provider errors are not wrapped; they reach the caller unchanged.
"""


class MindSplitError(Exception):
    """Base class for all MindSplit errors."""


class ValidationError(MindSplitError, ValueError):
    """Invalid input: mismatched vector dimensions, bad config values, bad partition count."""


class NotFoundError(MindSplitError, LookupError):
    """Unknown session id."""


class StorageError(MindSplitError):
    """
    A store operation failed.

    Raised by batch writes after rollback, so nothing from the failed batch
    is visible and the caller may retry.
    """
