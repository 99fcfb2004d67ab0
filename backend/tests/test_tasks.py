"""Tests for ARQ task definitions."""

from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest

from conftest import FakeLLM, FakeRevalidator, FakeScraper, FakeSearchClient, make_event, make_result
from deadline.services.extraction_schemas import DateUpdate, UpdateAnalysis
from deadline.services.updates import UpdateDetector
from deadline.tasks.pipeline import (
    TASK_FUNCTIONS,
    detect_updates_task,
    log_task_failure,
    sweep_updates_task,
)
from deadline.tasks.worker import WorkerSettings, get_cron_jobs


class FakeRedis:
    def __init__(self):
        self.jobs: list[tuple] = []

    async def enqueue_job(self, function, *args):
        self.jobs.append((function, *args))


def session_maker_for(session):
    @asynccontextmanager
    async def maker():
        yield session

    return maker


@pytest.mark.asyncio
async def test_log_task_failure_reraises():
    @log_task_failure("broken")
    async def broken(ctx, event_id):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await broken({}, 3)


@pytest.mark.asyncio
async def test_log_task_failure_passes_result_through():
    @log_task_failure("fine")
    async def fine(ctx):
        return {"status": "completed"}

    assert await fine({}) == {"status": "completed"}
    assert fine.__name__ == "fine"


@pytest.mark.asyncio
async def test_sweep_enqueues_events_with_query(async_session):
    async_session.add_all([make_event(1), make_event(2, query=None), make_event(3)])
    await async_session.commit()
    redis = FakeRedis()

    with patch("deadline.tasks.pipeline.async_session_maker", session_maker_for(async_session)):
        result = await sweep_updates_task({"redis": redis})

    assert result["events_enqueued"] == 2
    assert redis.jobs == [("detect_updates_task", 1), ("detect_updates_task", 3)]


@pytest.mark.asyncio
async def test_detect_updates_task(async_session, settings, event):
    analysis = UpdateAnalysis(updates=[DateUpdate(date="2024-01-05", title="Arrests", description="Two held.")])
    results = [make_result("https://new.com/a", "2024-01-05")]

    def build(session):
        return UpdateDetector(
            session, FakeSearchClient(results), FakeScraper(), FakeLLM(analysis=analysis), FakeRevalidator(), settings
        )

    with (
        patch("deadline.tasks.pipeline.async_session_maker", session_maker_for(async_session)),
        patch("deadline.tasks.pipeline.build_update_detector", build),
    ):
        result = await detect_updates_task({}, 1)

    assert result == {
        "status": "completed",
        "task": "detect_updates",
        "event_id": 1,
        "outcome": "updates_created",
        "updates_created": 1,
    }


def test_worker_registers_all_tasks():
    assert WorkerSettings.functions == TASK_FUNCTIONS
    assert {f.__name__ for f in TASK_FUNCTIONS} == {
        "extract_details_task",
        "detect_updates_task",
        "sweep_updates_task",
    }


def test_cron_disabled_by_default(settings):
    with patch("deadline.tasks.worker.settings", settings):
        assert get_cron_jobs() == []
