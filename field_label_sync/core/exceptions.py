"""
Error taxonomy for the label synchronization pipeline.
"""

from typing import Optional


class LabelSyncError(Exception):
    """Base class for every pipeline error."""


class UpstreamError(LabelSyncError):
    """Raised when a Jira call returns a non-success status or an unusable body."""

    def __init__(
        self,
        message: str,
        resource: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        context_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.resource = resource
        self.status_code = status_code
        self.body = body
        self.context_id = context_id

    def __str__(self) -> str:
        parts = [self.message, f"resource={self.resource}"]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.context_id is not None:
            parts.append(f"context_id={self.context_id}")
        return " ".join(parts)


class MalformedResponseError(UpstreamError):
    """Raised when a page body is not JSON or lacks a valid 'values' array."""


class CacheWriteError(LabelSyncError):
    """Raised when the label set cannot be written to the cache store."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.message = message
        self.key = key
