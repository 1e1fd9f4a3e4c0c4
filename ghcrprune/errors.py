"""
Exception hierarchy for ghcr-prune.

Configuration problems are raised before any network access, listing
failures abort the whole run, and deletion failures stop the remaining
deletions while the progress made so far is still reported.
"""

from typing import Optional


class PruneError(Exception):
    """Base class for all pruning errors."""


class ConfigurationError(PruneError, ValueError):
    """Raised when the run configuration is invalid or contradictory."""


class UpstreamListError(PruneError):
    """Raised when the version listing fails while crawling pages."""

    def __init__(self, message: str, page: Optional[int] = None):
        super().__init__(message)
        self.page = page


class DeletionError(PruneError):
    """Raised when a single version deletion fails.

    Attributes:
        version: The version whose deletion failed
    """

    def __init__(self, message: str, version=None):
        super().__init__(message)
        self.version = version
