"""
The persisted label set: one well-known cache key holding every label.
"""

from typing import Iterable, List, Optional

from field_label_sync.core.cache import CacheManager, get_cache_manager
from field_label_sync.core.config import get_settings
from field_label_sync.core.exceptions import CacheWriteError
from field_label_sync.core.logging_config import get_logger

logger = get_logger(__name__)

MERGE_LOCK_NAME = "label-set-merge"


def merge_labels(existing: Iterable[str], incoming: Iterable[str]) -> List[str]:
    """Drop existing labels equal to any incoming label, then append the incoming batch."""
    incoming = list(incoming)
    replaced = set(incoming)
    return [label for label in existing if label not in replaced] + incoming


class LabelCache:
    """
    Read, overwrite and merge the label set.

    The store gives no isolation: two concurrent merge_upsert calls can lose
    one another's writes unless use_lock is set.
    """

    def __init__(
        self,
        store: Optional[CacheManager] = None,
        key: Optional[str] = None,
        use_lock: Optional[bool] = None,
    ):
        settings = get_settings()
        self.store = store or get_cache_manager()
        self.key = key or settings.LABELS_CACHE_KEY
        self.use_lock = settings.SYNC_MERGE_LOCK_ENABLED if use_lock is None else use_lock

    async def read_all(self) -> List[str]:
        value = await self.store.get(self.key)
        if not isinstance(value, list):
            if value is not None:
                logger.warning(f"Ignoring non-list value stored under '{self.key}'")
            return []
        return [label for label in value if isinstance(label, str)]

    async def overwrite(self, labels: Iterable[str]) -> None:
        labels = list(labels)
        try:
            await self.store.set(self.key, labels)
        except Exception as e:
            # Any store failure (Redis down, serialization) surfaces as one type
            raise CacheWriteError(f"Failed to save labels to storage: {e}", key=self.key) from e
        logger.info(f"Saved {len(labels)} labels under '{self.key}'")

    async def merge_upsert(self, new_labels: Iterable[str]) -> List[str]:
        """Replace any cached copy of the incoming labels and append them; returns the stored set."""
        new_labels = list(new_labels)
        if self.use_lock:
            async with self.store.lock(MERGE_LOCK_NAME):
                return await self._merge(new_labels)
        return await self._merge(new_labels)

    async def _merge(self, new_labels: List[str]) -> List[str]:
        existing = await self.read_all()
        merged = merge_labels(existing, new_labels)
        await self.overwrite(merged)
        logger.debug(f"Merged {len(new_labels)} labels into {len(existing)} cached labels")
        return merged
