"""Tests for monotonic progress reporting and fail-fast gathering"""

import asyncio

import pytest

from scenecast.pipeline.progress import ProgressTracker
from scenecast.utils.concurrency import gather_fail_fast


class TestProgressTracker:

    @pytest.mark.asyncio
    async def test_only_increases_are_persisted(self, store, project):
        await store.save(project)
        tracker = ProgressTracker(store, "proj-1", "job-1")

        assert await tracker.update(30) == 30
        assert await tracker.update(20) == 30
        assert await tracker.update(30.2) == 30

        assert (await store.get("proj-1")).history["job-1"].progress == 30

    @pytest.mark.asyncio
    async def test_stage_maps_fraction_onto_range(self, store, project):
        await store.save(project)
        tracker = ProgressTracker(store, "proj-1", "job-1")
        report = tracker.stage(50, 75)

        await report(0.5)
        assert tracker.current == 62

        await report(2.0)
        assert tracker.current == 75

    @pytest.mark.asyncio
    async def test_concurrent_updates_stay_monotonic(self, store, project):
        await store.save(project)
        tracker = ProgressTracker(store, "proj-1", "job-1")

        await asyncio.gather(*(tracker.update(v) for v in (10, 40, 25, 35, 40)))

        assert tracker.current == 40
        assert (await store.get("proj-1")).history["job-1"].progress == 40


class TestGatherFailFast:

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        assert await gather_fail_fast([value(1, 0.02), value(2, 0.0)]) == [1, 2]

    @pytest.mark.asyncio
    async def test_first_failure_cancels_the_rest(self):
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await gather_fail_fast([slow(), boom()])
        assert cancelled.is_set()
