"""Pydantic models for the ingestion boundary."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, JsonValue, ValidationInfo, field_validator


class RawEvent(BaseModel):
    """One event as reported by a producer.

    ``path`` is required by ingestion but validated per event (an empty,
    missing or null path skips the event instead of rejecting the batch), so
    it is optional here. A JSON null in any field means "use the default".
    """

    timestamp: Optional[datetime] = Field(None, description='Event time (RFC 3339)')
    path: str = Field('', description='Request path')
    method: str = Field('', description='HTTP method')
    status: int = Field(0, description='HTTP status code')
    duration_ms: int = Field(0, description='Request duration in milliseconds')
    remote_ip: str = Field('', description='Client address')
    attributes: Dict[str, JsonValue] = Field(
        default_factory=dict, description='Custom key/value pairs (any JSON value)'
    )

    @field_validator('path', 'method', 'status', 'duration_ms', 'remote_ip', 'attributes', mode='before')
    @classmethod
    def null_to_default(cls, v: Any, info: ValidationInfo) -> Any:
        """Replace an explicit null with the field default."""
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v


class IngestRequest(BaseModel):
    """Batch of events submitted to POST /v1/events."""

    events: List[RawEvent] = Field(default_factory=list)


class IngestResponse(BaseModel):
    status: str = 'accepted'
    count: int
