"""
Builds the display labels of one custom field context.

A label reads "<option value> | <project key> | <project name>". A context
produces one label per enabled option and mapped project, options outer and
projects inner. Contexts with no mapped project produce no labels.
"""

from typing import Dict, Iterable, List, Mapping

from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.jira.jira_client import JiraAPIClient
from field_label_sync.models.label_models import EMPTY_PROJECT, OptionRecord, ProjectInfo, ProjectMapping

logger = get_logger(__name__)

LABEL_SEPARATOR = " | "


def format_label(option_value: str, project: ProjectInfo) -> str:
    return LABEL_SEPARATOR.join([option_value, project.key, project.name])


def build_mapping_index(mappings: Iterable[ProjectMapping]) -> Dict[str, List[str]]:
    """Group mapped project ids by context id, keeping first-seen order."""
    index: Dict[str, List[str]] = {}
    for mapping in mappings:
        project_ids = index.setdefault(mapping.context_id, [])
        if mapping.project_id not in project_ids:
            project_ids.append(mapping.project_id)
    return index


def join_labels(
    options: Iterable[OptionRecord],
    project_ids: List[str],
    directory: Mapping[str, ProjectInfo],
) -> List[str]:
    """Cross enabled options with mapped projects."""
    projects = [directory.get(project_id, EMPTY_PROJECT) for project_id in project_ids]
    return [
        format_label(option.value, project)
        for option in options
        if not option.disabled
        for project in projects
    ]


class ContextLabelBuilder:
    """Joins one context's options against the shared mapping index and directory."""

    def __init__(self, client: JiraAPIClient):
        self.client = client

    async def build(
        self,
        context_id: str,
        mapping_index: Mapping[str, List[str]],
        directory: Mapping[str, ProjectInfo],
    ) -> List[str]:
        project_ids = mapping_index.get(context_id, [])
        options = await self.client.fetch_enabled_options(context_id)

        if not project_ids:
            logger.info(f"Context {context_id} has no mapped projects, dropping {len(options)} options")
            return []

        labels = join_labels(options, project_ids, directory)
        logger.debug(
            f"Context {context_id}: {len(labels)} labels from {len(options)} options x {len(project_ids)} projects"
        )
        return labels
