"""
Fetch-all-pages helper for Jira's startAt/maxResults pagination.
"""

from typing import Any, Awaitable, Callable, List, Optional

from pydantic import ValidationError

from field_label_sync.core.exceptions import MalformedResponseError
from field_label_sync.core.logging_config import get_logger
from field_label_sync.models.label_models import Page

logger = get_logger(__name__)

PageFetcher = Callable[[int, int], Awaitable[Any]]


def parse_page(body: Any, resource: str, context_id: Optional[str] = None) -> Page:
    """Validate a decoded page body, rejecting anything without a 'values' list."""
    if not isinstance(body, dict) or not isinstance(body.get('values'), list):
        raise MalformedResponseError(
            "Jira response missing or invalid 'values' array",
            resource=resource,
            body=repr(body)[:500],
            context_id=context_id,
        )
    try:
        return Page.model_validate(body)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Jira page failed validation: {e.error_count()} error(s)",
            resource=resource,
            body=repr(body)[:500],
            context_id=context_id,
        ) from e


async def fetch_all_pages(
    fetch_page: PageFetcher,
    page_size: int,
    resource: str,
    context_id: Optional[str] = None,
) -> List[Any]:
    """
    Concatenate the 'values' of every page of a Jira collection.

    Args:
        fetch_page: Coroutine taking (start_at, max_results) and returning the decoded body
        page_size: maxResults requested per call
        resource: Collection name used in errors and logs
        context_id: Context the collection belongs to, if any

    Returns:
        All values in page order

    Raises:
        UpstreamError: Propagated from fetch_page on a failed call
        MalformedResponseError: A page body is unusable
    """
    values: List[Any] = []
    start_at = 0
    page_count = 0

    while True:
        body = await fetch_page(start_at, page_size)
        page = parse_page(body, resource, context_id)
        page_count += 1
        values.extend(page.values)

        if page.is_last:
            break

        step = page.max_results
        if step is None or step <= 0:
            raise MalformedResponseError(
                f"Jira page is not last but maxResults={step} cannot advance startAt",
                resource=resource,
                body=repr(body)[:500],
                context_id=context_id,
            )
        start_at += step

    logger.debug(f"Fetched {len(values)} {resource} values across {page_count} page(s)")
    return values
