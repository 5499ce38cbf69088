"""Models package for database entities and Pydantic models."""

from apiinsight.models.api_key import ApiKey
from apiinsight.models.event import Event
from apiinsight.models.ingest import IngestRequest, IngestResponse, RawEvent
from apiinsight.models.metric_bucket import MetricBucket

__all__ = [
    'ApiKey',
    'Event',
    'MetricBucket',
    'RawEvent',
    'IngestRequest',
    'IngestResponse',
]
