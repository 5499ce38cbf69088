"""API Insight: request-event ingestion, hourly rollups and retention."""

__version__ = '0.1.0'
