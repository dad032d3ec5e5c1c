"""Exception taxonomy for the news pipeline.

Only ``PersistenceFailure`` ever turns an ingest cycle into a failed result;
every other error is absorbed at the component that raised it.
"""

from __future__ import annotations

from typing import Optional


class NewsError(Exception):
    """Base exception for all news pipeline errors"""
    pass


class SourceUnreachable(NewsError):
    """Raised when a feed cannot be fetched (network, timeout, non-2xx)"""

    def __init__(self, message: str, status: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url


class ParseFailure(NewsError):
    """Raised when feed content is malformed beyond recovery"""
    pass


class DedupBackendUnavailable(NewsError):
    """Raised when the embedder, vector index or document store is unusable"""
    pass


class PersistenceFailure(NewsError):
    """Raised when a sentiment snapshot cannot be saved"""
    pass
