"""Task graphs, activity data staging and an in-memory event store."""

__version__ = "0.1.0"