"""
Feedback Loop
=============

Realized-outcome tracking for emitted trading signals.

This package provides:
- Per-source credibility ratings nudged by signal accuracy
- Per-symbol signal performance totals and derived metrics
- Bounded realized price-impact history with a 24h retention sweep
"""

from .credibility import SourceCredibility, get_prior_rating, get_source_tier
from .performance import PerformanceTracker

__all__ = [
    "SourceCredibility",
    "get_prior_rating",
    "get_source_tier",
    "PerformanceTracker",
]
