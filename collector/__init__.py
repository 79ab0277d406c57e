"""GitDiscover collector: trending repository ingestion, scoring and enrichment."""

__version__ = "1.0.0"
