"""
Jira API Client for the label sync pipeline
Handles the custom field context, project mapping, option and project search calls
"""

import json
from typing import Any, List, Optional, Sequence, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from field_label_sync.core.config import Settings, get_settings
from field_label_sync.core.exceptions import MalformedResponseError, UpstreamError
from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.jira.pagination import fetch_all_pages
from field_label_sync.models.label_models import Context, OptionRecord, ProjectMapping, ProjectRecord

logger = get_logger(__name__)

RowT = TypeVar("RowT", bound=BaseModel)

DEFAULT_HEADERS = {
    'Accept': 'application/json',
    'Accept-Charset': 'utf-8',
    'User-Agent': 'Field-Label-Sync/1.0'
}


class JiraAPIClient:
    """Async client for the Jira REST calls the label pipeline needs."""

    def __init__(
        self,
        username: str,
        token: str,
        base_url: str,
        field_id: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize Jira API client.

        Args:
            username: Jira username/email
            token: Jira API token
            base_url: Jira instance base URL
            field_id: Custom field whose contexts are synchronized (e.g. 'customfield_10107')
            timeout: Per-request timeout in seconds
            http_client: Pre-built client (tests pass one with a mock transport)
            settings: Page size configuration, defaults to the global settings
        """
        self.username = username
        self.base_url = base_url.rstrip('/')
        self.field_id = field_id
        self.settings = settings or get_settings()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            auth=(username, token),
            headers=DEFAULT_HEADERS,
            timeout=timeout,
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
        )

    @classmethod
    def create_from_settings(cls, settings: Optional[Settings] = None) -> 'JiraAPIClient':
        """
        Create JiraAPIClient from application settings.

        Returns:
            Configured JiraAPIClient instance
        """
        settings = settings or get_settings()
        return cls(
            username=settings.JIRA_USERNAME,
            token=settings.JIRA_API_TOKEN,
            base_url=settings.JIRA_BASE_URL,
            field_id=settings.JIRA_CUSTOM_FIELD_ID,
            timeout=settings.JIRA_REQUEST_TIMEOUT_SECONDS,
            settings=settings,
        )

    async def __aenter__(self) -> 'JiraAPIClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def field_url(self) -> str:
        return f"{self.base_url}/rest/api/3/field/{self.field_id}"

    async def _get_json(
        self,
        url: str,
        params: Sequence[Tuple[str, Any]],
        resource: str,
        context_id: Optional[str] = None,
    ) -> Any:
        """GET a Jira resource and decode its JSON body, raising UpstreamError on failure."""
        try:
            response = await self._client.get(url, params=list(params))
        except httpx.HTTPError as e:
            logger.error(f"Jira request failed ({resource}): {e}")
            raise UpstreamError(
                f"Jira request failed: {e}",
                resource=resource,
                context_id=context_id,
            ) from e

        if not response.is_success:
            body = response.text
            logger.error(f"Jira API error ({resource}): {response.status_code} - {body[:500]}")
            raise UpstreamError(
                f"Jira API error ({resource}): {response.status_code}",
                resource=resource,
                status_code=response.status_code,
                body=body,
                context_id=context_id,
            )

        try:
            return response.json()
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON from Jira API response ({resource}): {e}")
            raise MalformedResponseError(
                "Failed to parse JSON from Jira API response",
                resource=resource,
                status_code=response.status_code,
                body=response.text[:500],
                context_id=context_id,
            ) from e

    @staticmethod
    def _validate_rows(
        model: Type[RowT],
        rows: List[Any],
        resource: str,
        context_id: Optional[str] = None,
    ) -> List[RowT]:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            raise MalformedResponseError(
                f"Jira {resource} row failed validation: {e.error_count()} error(s)",
                resource=resource,
                body=str(e)[:500],
                context_id=context_id,
            ) from e

    # ------------------------------------------------------------------
    # Single pages
    # ------------------------------------------------------------------

    async def get_contexts_page(self, start_at: int, max_results: int) -> Any:
        return await self._get_json(
            f"{self.field_url}/context",
            [('startAt', start_at), ('maxResults', max_results)],
            resource='contexts',
        )

    async def get_project_mappings_page(self, start_at: int, max_results: int) -> Any:
        return await self._get_json(
            f"{self.field_url}/context/projectmapping",
            [('startAt', start_at), ('maxResults', max_results)],
            resource='projectmapping',
        )

    async def get_options_page(self, context_id: str, start_at: int, max_results: int) -> Any:
        return await self._get_json(
            f"{self.field_url}/context/{context_id}/option",
            [('startAt', start_at), ('maxResults', max_results)],
            resource='options',
            context_id=context_id,
        )

    async def search_projects_page(self, project_ids: Sequence[str], start_at: int, max_results: int) -> Any:
        # Each id is sent as its own 'id' parameter
        params: List[Tuple[str, Any]] = [('startAt', start_at), ('maxResults', max_results)]
        params.extend(('id', str(project_id)) for project_id in project_ids)
        return await self._get_json(
            f"{self.base_url}/rest/api/3/project/search",
            params,
            resource='project search',
        )

    # ------------------------------------------------------------------
    # Whole collections
    # ------------------------------------------------------------------

    async def fetch_contexts(self) -> List[Context]:
        """Fetch every context of the custom field."""
        logger.debug(f"Fetching contexts for custom field {self.field_id}")
        rows = await fetch_all_pages(
            self.get_contexts_page, self.settings.CONTEXTS_PAGE_SIZE, resource='contexts'
        )
        contexts = self._validate_rows(Context, rows, 'contexts')
        logger.info(f"Fetched {len(contexts)} contexts for custom field {self.field_id}")
        return contexts

    async def fetch_project_mappings(self) -> List[ProjectMapping]:
        """Fetch the full context-to-project mapping table."""
        rows = await fetch_all_pages(
            self.get_project_mappings_page,
            self.settings.PROJECT_MAPPINGS_PAGE_SIZE,
            resource='projectmapping',
        )
        mappings = self._validate_rows(ProjectMapping, rows, 'projectmapping')
        logger.info(f"Fetched {len(mappings)} context-project mappings")
        return mappings

    async def fetch_enabled_options(self, context_id: str) -> List[OptionRecord]:
        """Fetch the options of one context, keeping only enabled ones."""

        async def fetch_page(start_at: int, max_results: int) -> Any:
            return await self.get_options_page(context_id, start_at, max_results)

        rows = await fetch_all_pages(
            fetch_page, self.settings.OPTIONS_PAGE_SIZE, resource='options', context_id=context_id
        )
        options = self._validate_rows(OptionRecord, rows, 'options', context_id)
        enabled = [option for option in options if not option.disabled]
        logger.debug(f"Context {context_id}: {len(enabled)} enabled of {len(options)} options")
        return enabled

    async def search_projects(self, project_ids: Sequence[str]) -> List[ProjectRecord]:
        """Fetch the projects with the given ids, following every page."""

        async def fetch_page(start_at: int, max_results: int) -> Any:
            return await self.search_projects_page(project_ids, start_at, max_results)

        rows = await fetch_all_pages(
            fetch_page, self.settings.PROJECT_SEARCH_PAGE_SIZE, resource='project search'
        )
        return self._validate_rows(ProjectRecord, rows, 'project search')
