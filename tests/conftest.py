"""
Shared fixtures: an in-memory Jira behind httpx.MockTransport, an in-memory
label store and a fake RabbitMQ queue manager.
"""

import os
import tempfile

os.environ["CACHE_BACKEND"] = "memory"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SYNC_MODE"] = "batch"
os.environ["JIRA_BASE_URL"] = "https://jira.example.test"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="field-label-sync-logs-")

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from field_label_sync.core.cache import CacheManager, set_cache_manager
from field_label_sync.core.config import Settings, get_settings, reset_settings
from field_label_sync.etl.jira.jira_client import JiraAPIClient
from field_label_sync.etl.label_cache import LabelCache
from field_label_sync.etl.orchestrator import LabelSyncOrchestrator

JIRA_BASE_URL = "https://jira.example.test"
FIELD_ID = "customfield_10107"


class FakeJira:
    """
    In-memory Jira serving the four collections the pipeline reads.

    Pages honour startAt/maxResults and report isLast. Paths listed in
    `failures` answer with the given status instead.
    """

    def __init__(self):
        self.contexts: List[Dict[str, Any]] = []
        self.mappings: List[Dict[str, Any]] = []
        self.options: Dict[str, List[Dict[str, Any]]] = {}
        self.projects: List[Dict[str, Any]] = []
        self.failures: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []

    def add_context(self, context_id: str, options=(), project_ids=()):
        self.contexts.append({"id": context_id, "name": f"Context {context_id}"})
        self.options[context_id] = [
            {"id": f"{context_id}-{i}", "value": value, "disabled": disabled}
            for i, (value, disabled) in enumerate(options)
        ]
        for project_id in project_ids:
            self.mappings.append({"contextId": context_id, "projectId": project_id})

    def add_project(self, project_id: str, key: str, name: str):
        self.projects.append({"id": project_id, "key": key, "name": name})

    def requests_to(self, suffix: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith(suffix)]

    def _page(self, rows: List[Any], params: httpx.QueryParams) -> httpx.Response:
        start = int(params.get("startAt", 0))
        size = int(params.get("maxResults", 50))
        return httpx.Response(200, json={
            "startAt": start,
            "maxResults": size,
            "total": len(rows),
            "isLast": start + size >= len(rows),
            "values": rows[start:start + size],
        })

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        for suffix, status in self.failures.items():
            if path.endswith(suffix):
                return httpx.Response(status, text=f"error for {suffix}")

        if path.endswith("/context/projectmapping"):
            return self._page(self.mappings, params)
        if path.endswith("/option"):
            context_id = path.split("/")[-2]
            return self._page(self.options.get(context_id, []), params)
        if path.endswith("/context"):
            return self._page(self.contexts, params)
        if path.endswith("/project/search"):
            ids = params.get_list("id")
            return self._page([p for p in self.projects if p["id"] in ids], params)
        return httpx.Response(404, text="not found")


class FakeQueueManager:
    """Records published jobs instead of talking to RabbitMQ."""

    def __init__(self, publish_result: bool = True):
        self.publish_result = publish_result
        self.sync_jobs: List[Dict[str, Any]] = []
        self.context_jobs: List[Dict[str, Any]] = []
        self.unreachable_queues: List[str] = []

    def publish_sync_job(self, job_type: str, **fields: Any) -> bool:
        self.sync_jobs.append({"type": job_type, **fields})
        return self.publish_result

    def publish_context_job(self, context_id: str, **fields: Any) -> bool:
        self.context_jobs.append({"type": "load_context_options", "contextId": context_id, **fields})
        return self.publish_result

    def get_queue_stats(self, queue_name: str) -> Optional[Dict[str, int]]:
        if queue_name in self.unreachable_queues:
            return None
        queued = len(self.sync_jobs) if queue_name == "label_sync_jobs" else len(self.context_jobs)
        return {"message_count": queued, "consumer_count": 1}


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings from the environment for every test."""
    reset_settings()
    yield
    reset_settings()
    set_cache_manager(None)


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira()


@pytest.fixture
def c1_jira(fake_jira) -> FakeJira:
    """C1 maps to P1 and P2 and has options Red, Blue and disabled Green."""
    fake_jira.add_project("10001", "KEY1", "Name1")
    fake_jira.add_project("10002", "KEY2", "Name2")
    fake_jira.add_context(
        "C1",
        options=[("Red", False), ("Blue", False), ("Green", True)],
        project_ids=["10001", "10002"],
    )
    return fake_jira


@pytest.fixture
def make_client(fake_jira, settings) -> Callable[..., JiraAPIClient]:
    """Factory for Jira clients wired to the fake Jira."""

    def factory(client_settings: Optional[Settings] = None) -> JiraAPIClient:
        return JiraAPIClient(
            username="sync@example.test",
            token="secret-token",
            base_url=JIRA_BASE_URL,
            field_id=FIELD_ID,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_jira.handler)),
            settings=client_settings or settings,
        )

    return factory


@pytest.fixture
def memory_store() -> CacheManager:
    store = CacheManager(backend="memory")
    set_cache_manager(store)
    return store


@pytest.fixture
def label_cache(memory_store) -> LabelCache:
    return LabelCache(store=memory_store, use_lock=False)


@pytest.fixture
def fake_queue() -> FakeQueueManager:
    return FakeQueueManager()


@pytest.fixture
def orchestrator(make_client, label_cache, fake_queue, settings) -> LabelSyncOrchestrator:
    return LabelSyncOrchestrator(
        client_factory=make_client,
        label_cache=label_cache,
        queue_manager=fake_queue,
        settings=settings,
    )
