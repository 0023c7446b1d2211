"""
Pydantic schemas for Field Label Sync API responses.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class HealthResponse(BaseModel):
    """Response for health check."""
    status: str = "healthy"
    message: str = "Field Label Sync is running"
    cache_backend: str
    cache_status: str
    label_count: int = 0
    queue_status: str = "healthy"
    queues: Dict[str, Optional[Dict[str, int]]] = Field(default_factory=dict, description="Message and consumer counts per queue, None when unreachable")
    version: str


class LabelsResponse(BaseModel):
    """Labels matching a query, in cache order."""
    labels: List[str] = Field(default_factory=list, description="Matching labels")
    count: int = Field(default=0, description="Number of labels returned")


class SyncTriggerResponse(BaseModel):
    """Response for a manual sync trigger."""
    success: bool = Field(description="Whether the root job was published")
    job_type: str = Field(description="Queue message type that was published")
    mode: str = Field(description="Sync mode the job runs in")
    message: str


class WebhookAcceptedResponse(BaseModel):
    """Response for an accepted Jira webhook."""
    accepted: bool = True
    event: Optional[str] = Field(default=None, description="Jira webhookEvent value, when present")
    detail: Dict[str, Any] = Field(default_factory=dict)
