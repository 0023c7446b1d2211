"""
Tests for the batch and fan-out refresh strategies.
"""

import logging

import pytest

from field_label_sync.core.exceptions import UpstreamError
from field_label_sync.etl.orchestrator import LabelSyncOrchestrator


@pytest.fixture
def two_context_jira(c1_jira):
    c1_jira.add_project("10003", "KEY3", "Name3")
    c1_jira.add_context("C2", options=[("Small", False), ("Large", False)], project_ids=["10003"])
    c1_jira.add_context("C3", options=[("Unmapped", False)])
    return c1_jira


class TestBatchRefresh:
    """Whole-field rebuild with overwrite."""

    @pytest.mark.asyncio
    async def test_builds_every_context_and_overwrites(self, two_context_jira, orchestrator, label_cache):
        await label_cache.overwrite(["stale | OLD | Old"])

        report = await orchestrator.run_batch_refresh()

        assert await label_cache.read_all() == [
            "Red | KEY1 | Name1",
            "Red | KEY2 | Name2",
            "Blue | KEY1 | Name1",
            "Blue | KEY2 | Name2",
            "Small | KEY3 | Name3",
            "Large | KEY3 | Name3",
        ]
        assert report.ok
        assert report.succeeded == ["C1", "C2", "C3"]
        assert report.label_count == 6

    @pytest.mark.asyncio
    async def test_directory_is_resolved_once(self, two_context_jira, orchestrator):
        await orchestrator.run_batch_refresh()

        assert len(two_context_jira.requests_to("/project/search")) == 1
        assert len(two_context_jira.requests_to("/context/projectmapping")) == 1

    @pytest.mark.asyncio
    async def test_failed_context_is_skipped_and_reported(self, two_context_jira, orchestrator, label_cache):
        two_context_jira.failures["/context/C1/option"] = 503

        report = await orchestrator.run_batch_refresh()

        assert await label_cache.read_all() == ["Small | KEY3 | Name3", "Large | KEY3 | Name3"]
        assert not report.ok
        assert list(report.failed) == ["C1"]
        assert "status=503" in report.failed["C1"]
        assert report.succeeded == ["C2", "C3"]

    @pytest.mark.asyncio
    async def test_mapping_failure_aborts_without_writing(self, two_context_jira, orchestrator, label_cache):
        await label_cache.overwrite(["kept | K | N"])
        two_context_jira.failures["/context/projectmapping"] = 500

        with pytest.raises(UpstreamError):
            await orchestrator.run_batch_refresh()

        assert await label_cache.read_all() == ["kept | K | N"]

    @pytest.mark.asyncio
    async def test_records_carry_run_and_context_ids(self, two_context_jira, orchestrator, caplog):
        two_context_jira.failures["/context/C2/option"] = 500
        caplog.set_level(logging.INFO, logger="field_label_sync.etl.orchestrator")

        report = await orchestrator.run_batch_refresh()

        run_records = [r for r in caplog.records if getattr(r, "run_id", None) == report.run_id]
        assert run_records
        failures = [r for r in run_records if r.levelno == logging.ERROR]
        assert [r.context_id for r in failures] == ["C2"]
        assert all(r.mode == "batch" for r in run_records)


class TestFanoutRefresh:
    """Per-context units through the queue."""

    @pytest.mark.asyncio
    async def test_enqueues_one_unit_per_context(self, two_context_jira, orchestrator, fake_queue):
        enqueued = await orchestrator.run_fanout_refresh()

        assert enqueued == ["C1", "C2", "C3"]
        assert [job["contextId"] for job in fake_queue.context_jobs] == ["C1", "C2", "C3"]
        assert len({job["runId"] for job in fake_queue.context_jobs}) == 1

    @pytest.mark.asyncio
    async def test_unpublished_context_is_not_reported_enqueued(self, two_context_jira, orchestrator, fake_queue):
        fake_queue.publish_result = False

        assert await orchestrator.run_fanout_refresh() == []

    @pytest.mark.asyncio
    async def test_refresh_context_merges_only_its_labels(self, two_context_jira, orchestrator, label_cache):
        await label_cache.overwrite(["Small | KEY3 | Name3", "Red | KEY1 | Name1"])

        labels = await orchestrator.refresh_context("C1")

        assert len(labels) == 4
        assert await label_cache.read_all() == [
            "Small | KEY3 | Name3",
            "Red | KEY1 | Name1",
            "Red | KEY2 | Name2",
            "Blue | KEY1 | Name1",
            "Blue | KEY2 | Name2",
        ]

    @pytest.mark.asyncio
    async def test_refresh_context_replaces_prior_contribution(self, fake_jira, orchestrator, label_cache):
        fake_jira.add_project("10001", "KEY1", "Name1")
        fake_jira.add_context("C1", options=[("Red", False), ("Blue", False)], project_ids=["10001"])
        await label_cache.overwrite(["Red | KEY1 | Name1"])

        await orchestrator.refresh_context("C1")

        assert await label_cache.read_all() == ["Red | KEY1 | Name1", "Blue | KEY1 | Name1"]

    @pytest.mark.asyncio
    async def test_refresh_context_resolves_only_its_projects(self, two_context_jira, orchestrator):
        await orchestrator.refresh_context("C2")

        searches = two_context_jira.requests_to("/project/search")
        assert [r.url.params.get_list("id") for r in searches] == [["10003"]]

    @pytest.mark.asyncio
    async def test_refresh_context_propagates_upstream_errors(self, two_context_jira, orchestrator, label_cache):
        two_context_jira.failures["/context/C1/option"] = 500

        with pytest.raises(UpstreamError):
            await orchestrator.refresh_context("C1")

        assert await label_cache.read_all() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("context_id", [None, "", "   "])
    async def test_refresh_context_requires_context_id(self, orchestrator, context_id):
        with pytest.raises(ValueError, match="Missing contextId"):
            await orchestrator.refresh_context(context_id)


class TestRunModes:

    @pytest.mark.asyncio
    async def test_run_dispatches_on_mode(self, two_context_jira, orchestrator, fake_queue):
        report = await orchestrator.run("batch")
        enqueued = await orchestrator.run("fanout")

        assert report.label_count == 6
        assert enqueued == ["C1", "C2", "C3"]

    @pytest.mark.asyncio
    async def test_unknown_mode_is_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            await orchestrator.run("sideways")

    def test_configuration_change_is_accepted_without_work(self, fake_queue, label_cache, caplog):
        orchestrator = LabelSyncOrchestrator(
            client_factory=lambda: pytest.fail("no Jira call expected"),
            label_cache=label_cache,
            queue_manager=fake_queue,
        )
        caplog.set_level(logging.INFO)

        orchestrator.handle_configuration_changed({"webhookEvent": "field_updated"})

        assert fake_queue.sync_jobs == [] and fake_queue.context_jobs == []
        assert "configuration change" in caplog.text
