"""Card Trends — market trend aggregation, caching and daily snapshots."""

__version__ = "0.1.0"
