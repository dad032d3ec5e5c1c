"""News Signals package.

Ingests market news feeds, deduplicates headlines, scores market sentiment
and emits risk-gated trading signals with a credibility feedback loop.
"""

__all__: list[str] = []
