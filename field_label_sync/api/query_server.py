"""
Bounded label lookup over the cached label set.

Serves the picker: no upstream I/O, never raises.
"""

from typing import List, Optional

from field_label_sync.core.config import get_settings
from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.label_cache import LabelCache

logger = get_logger(__name__)

MAX_RESULTS = 20


class LabelQueryServer:
    """Filters the cached labels by a case-insensitive substring."""

    def __init__(self, label_cache: Optional[LabelCache] = None, limit: Optional[int] = None):
        self.label_cache = label_cache or LabelCache()
        configured = limit if limit is not None else get_settings().QUERY_RESULT_LIMIT
        self.limit = max(0, min(configured, MAX_RESULTS))

    async def query(self, text: Optional[str] = None, limit: Optional[int] = None) -> List[str]:
        """
        Return at most `limit` labels containing `text`, in cache order.

        Blank or missing text returns the first `limit` labels. A failed
        cache read is logged and returns an empty list.
        """
        limit = self.limit if limit is None else max(0, min(limit, self.limit))

        try:
            labels = await self.label_cache.read_all()
        except Exception as e:
            logger.error(f"Label lookup failed, returning no labels: {e}")
            return []

        needle = (text or "").strip().lower()
        if not needle:
            return labels[:limit]

        matches: List[str] = []
        for label in labels:
            if len(matches) >= limit:
                break
            if needle in label.lower():
                matches.append(label)
        return matches
