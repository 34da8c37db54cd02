"""Tests for the job queues and the pipeline worker"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError as PydanticValidationError

from scenecast.automation import (
    InMemoryJobQueue, PipelineWorker, QueueJob, RedisJobQueue, create_job_queue
)
from scenecast.automation.automation_models import JobEventType
from scenecast.project.project_models import JobType, VideoData
from scenecast.utils.config import WorkerConfig
from scenecast.utils.errors import ProviderError


class FakePipeline:
    def __init__(self, fail_videos=(), delay=0.0):
        self.fail_videos = set(fail_videos)
        self.delay = delay
        self.calls = []
        self.running = 0
        self.max_running = 0

    async def process_video(self, job_id, video_id, user_id):
        self.calls.append((job_id, video_id, user_id))
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delay)
            if video_id in self.fail_videos:
                raise ProviderError(f"Video generation failed for scene 1: nsfw ({video_id})")
            return VideoData(video_url=f"https://files.test/{video_id}.mp4", duration=10.0)
        finally:
            self.running -= 1


class TestQueueJob:

    def test_attempts_are_fixed_at_one(self):
        assert QueueJob(video_id="v", user_id="u").attempts == 1
        with pytest.raises(PydanticValidationError):
            QueueJob(video_id="v", user_id="u", attempts=3)

    def test_job_ids_are_unique(self):
        assert QueueJob(video_id="v", user_id="u").job_id != QueueJob(video_id="v", user_id="u").job_id


class TestInMemoryJobQueue:

    @pytest.mark.asyncio
    async def test_fifo(self):
        queue = InMemoryJobQueue()
        first, second = QueueJob(video_id="a", user_id="u"), QueueJob(video_id="b", user_id="u")
        await queue.enqueue(first)
        await queue.enqueue(second)

        assert (await queue.dequeue()).video_id == "a"
        assert (await queue.dequeue()).video_id == "b"
        assert await queue.dequeue() is None

    @pytest.mark.asyncio
    async def test_dequeue_waits_up_to_timeout(self):
        assert await InMemoryJobQueue().dequeue(timeout=0.01) is None

    def test_factory_picks_backend(self):
        assert isinstance(create_job_queue(WorkerConfig()), InMemoryJobQueue)
        assert isinstance(create_job_queue(WorkerConfig(backend="redis")), RedisJobQueue)


class TestRedisJobQueue:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.lpush = AsyncMock()
        client.rpush = AsyncMock()
        client.rpop = AsyncMock(return_value=None)
        client.brpop = AsyncMock(return_value=None)
        client.aclose = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_enqueue_pushes_json(self, client):
        queue = RedisJobQueue("video-processing", "redis://unused", client=client)
        job = QueueJob(job_id="job-1", video_id="v", user_id="u")

        await queue.enqueue(job)

        name, payload = client.lpush.call_args.args
        assert name == "video-processing"
        assert json.loads(payload)["job_id"] == "job-1"

    @pytest.mark.asyncio
    async def test_blocking_dequeue(self, client):
        job = QueueJob(job_id="job-1", video_id="v", user_id="u")
        client.brpop.return_value = ("video-processing", job.model_dump_json())
        queue = RedisJobQueue("video-processing", "redis://unused", client=client)

        dequeued = await queue.dequeue(timeout=5)

        assert dequeued.job_id == "job-1"
        client.brpop.assert_awaited_once_with(["video-processing"], timeout=5)

    @pytest.mark.asyncio
    async def test_malformed_payload_is_dropped(self, client):
        client.rpop.return_value = '{"video_id": 1'
        queue = RedisJobQueue("video-processing", "redis://unused", client=client)

        assert await queue.dequeue() is None

    @pytest.mark.asyncio
    async def test_events_go_to_the_events_list(self, client):
        queue = RedisJobQueue("video-processing", "redis://unused", client=client)
        job = QueueJob(job_id="job-1", video_id="v", user_id="u")

        await queue.publish_failure(job, "boom")

        name, payload = client.rpush.call_args.args
        assert name == "video-processing:events"
        event = json.loads(payload)
        assert event["event"] == "failed"
        assert event["error_message"] == "boom"

    @pytest.mark.asyncio
    async def test_close_releases_the_client(self, client):
        queue = RedisJobQueue("video-processing", "redis://unused", client=client)

        await queue.close()

        client.aclose.assert_awaited_once()
        assert queue._redis is None


class TestPipelineWorker:

    @pytest.mark.asyncio
    async def test_success_publishes_completion(self):
        queue = InMemoryJobQueue()
        pipeline = FakePipeline()
        await queue.enqueue(QueueJob(job_id="job-1", video_id="v1", user_id="u1"))

        stats = await PipelineWorker(queue, pipeline).run_until_empty()

        assert pipeline.calls == [("job-1", "v1", "u1")]
        assert stats.completed == 1
        [event] = queue.events
        assert event.event == JobEventType.COMPLETED
        assert event.video_url == "https://files.test/v1.mp4"

    @pytest.mark.asyncio
    async def test_failure_publishes_event_and_is_not_requeued(self):
        queue = InMemoryJobQueue()
        pipeline = FakePipeline(fail_videos={"v1"})
        await queue.enqueue(QueueJob(job_id="job-1", video_id="v1", user_id="u1"))

        stats = await PipelineWorker(queue, pipeline).run_until_empty()

        assert stats.failed == 1
        assert len(pipeline.calls) == 1
        assert queue.qsize() == 0
        [event] = queue.events
        assert event.event == JobEventType.FAILED
        assert "scene 1" in event.error_message

    @pytest.mark.asyncio
    async def test_unsupported_job_type(self):
        queue = InMemoryJobQueue()
        pipeline = FakePipeline()
        await queue.enqueue(QueueJob(video_id="v1", user_id="u1", type=JobType.REGENERATE_SCENE))

        stats = await PipelineWorker(queue, pipeline).run_until_empty()

        assert pipeline.calls == []
        assert stats.failed == 1
        assert "Unsupported job type" in queue.events[0].error_message

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        queue = InMemoryJobQueue()
        pipeline = FakePipeline(delay=0.01)
        for i in range(6):
            await queue.enqueue(QueueJob(video_id=f"v{i}", user_id="u"))

        stats = await PipelineWorker(queue, pipeline, concurrency=2).run_until_empty()

        assert stats.processed == 6
        assert pipeline.max_running == 2
        assert stats.success_rate == 100.0

    @pytest.mark.asyncio
    async def test_run_stops_after_in_flight_jobs_finish(self):
        queue = InMemoryJobQueue()
        pipeline = FakePipeline(delay=0.01)
        worker = PipelineWorker(queue, pipeline, concurrency=1, dequeue_timeout=0.01)
        await queue.enqueue(QueueJob(video_id="v1", user_id="u"))

        runner = asyncio.create_task(worker.run())
        while not queue.events:
            await asyncio.sleep(0.005)
        worker.stop()
        stats = await asyncio.wait_for(runner, timeout=1)

        assert stats.completed == 1
        assert worker.active_jobs == 0

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            PipelineWorker(InMemoryJobQueue(), FakePipeline(), concurrency=0)
