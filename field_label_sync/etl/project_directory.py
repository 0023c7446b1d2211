"""
Resolves project ids referenced by context mappings to their key and name.
"""

from typing import Dict, Iterable, List, Optional

from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.jira.jira_client import JiraAPIClient
from field_label_sync.models.label_models import ProjectInfo

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


def unique_in_order(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def chunked(values: List[str], size: int) -> List[List[str]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [values[i:i + size] for i in range(0, len(values), size)]


async def resolve_project_directory(
    client: JiraAPIClient,
    project_ids: Iterable[str],
    batch_size: Optional[int] = None,
) -> Dict[str, ProjectInfo]:
    """
    Build a projectId -> ProjectInfo directory for the given ids.

    Ids unknown to Jira are left out of the result; callers default them to
    an empty ProjectInfo.

    Args:
        client: Jira client used for the keyed project search
        project_ids: Ids to resolve, duplicates allowed
        batch_size: Max ids per search call (defaults to PROJECT_SEARCH_BATCH_SIZE)

    Returns:
        Mapping of project id to its key and name
    """
    ids = unique_in_order(str(project_id) for project_id in project_ids)
    if not ids:
        return {}

    size = batch_size or client.settings.PROJECT_SEARCH_BATCH_SIZE or DEFAULT_BATCH_SIZE
    directory: Dict[str, ProjectInfo] = {}

    for batch in chunked(ids, size):
        projects = await client.search_projects(batch)
        requested = set(batch)
        for project in projects:
            if project.id in requested:
                directory[project.id] = project.to_info()

    missing = [project_id for project_id in ids if project_id not in directory]
    if missing:
        logger.warning(f"Projects not found in Jira, labels will use blank key/name: {missing}")

    logger.info(f"Resolved {len(directory)} of {len(ids)} projects")
    return directory
