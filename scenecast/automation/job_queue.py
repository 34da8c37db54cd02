"""
Job queues

Jobs are consumed from a single named queue. Outcomes are published as
events on `{queue}:events`; nothing is ever re-queued.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError as PydanticValidationError

from .automation_models import JobEvent, JobEventType, QueueJob
from ..project.project_models import VideoData


class JobQueue(ABC):
    """Queue contract used by the worker"""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger('scenecast.queue')

    @property
    def events_name(self) -> str:
        return f"{self.name}:events"

    @abstractmethod
    async def enqueue(self, job: QueueJob) -> None:
        ...

    @abstractmethod
    async def dequeue(self, timeout: float = 0) -> Optional[QueueJob]:
        """Next job, or None when none arrives within `timeout` seconds (0 = don't wait)"""

    @abstractmethod
    async def publish_event(self, event: JobEvent) -> None:
        ...

    async def publish_completion(self, job: QueueJob, video: Optional[VideoData] = None) -> None:
        await self.publish_event(JobEvent(
            job_id=job.job_id,
            video_id=job.video_id,
            event=JobEventType.COMPLETED,
            video_url=video.video_url if video else None,
        ))

    async def publish_failure(self, job: QueueJob, error_message: str) -> None:
        await self.publish_event(JobEvent(
            job_id=job.job_id,
            video_id=job.video_id,
            event=JobEventType.FAILED,
            error_message=error_message,
        ))

    async def close(self) -> None:
        pass


class InMemoryJobQueue(JobQueue):
    """asyncio.Queue-backed queue for single-process runs and tests"""

    def __init__(self, name: str = "video-processing"):
        super().__init__(name)
        self._queue: asyncio.Queue = asyncio.Queue()
        self.events: List[JobEvent] = []

    async def enqueue(self, job: QueueJob) -> None:
        await self._queue.put(job)
        self.logger.info(f"Enqueued job {job.job_id} for video {job.video_id}")

    async def dequeue(self, timeout: float = 0) -> Optional[QueueJob]:
        if timeout <= 0:
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return None
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def publish_event(self, event: JobEvent) -> None:
        self.events.append(event)

    def qsize(self) -> int:
        return self._queue.qsize()


class RedisJobQueue(JobQueue):
    """Redis list queue: LPUSH to enqueue, BRPOP to consume"""

    def __init__(self, name: str, redis_url: str, client: Optional[aioredis.Redis] = None):
        super().__init__(name)
        self.redis_url = redis_url
        self._redis = client

    async def connect(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
            await self._redis.ping()
            self.logger.info(f"Connected to Redis queue '{self.name}'")
        return self._redis

    async def enqueue(self, job: QueueJob) -> None:
        client = await self.connect()
        await client.lpush(self.name, job.model_dump_json())
        self.logger.info(f"Enqueued job {job.job_id} for video {job.video_id}")

    async def dequeue(self, timeout: float = 0) -> Optional[QueueJob]:
        client = await self.connect()
        if timeout <= 0:
            payload = await client.rpop(self.name)
        else:
            popped = await client.brpop([self.name], timeout=max(1, int(timeout)))
            payload = popped[1] if popped else None
        if payload is None:
            return None
        try:
            return QueueJob.model_validate_json(payload)
        except PydanticValidationError as e:
            self.logger.error(f"Dropping malformed job payload from '{self.name}': {e}")
            return None

    async def publish_event(self, event: JobEvent) -> None:
        client = await self.connect()
        await client.rpush(self.events_name, event.model_dump_json())

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_job_queue(worker_config) -> JobQueue:
    if worker_config.backend == "redis":
        return RedisJobQueue(worker_config.queue_name, worker_config.redis_url)
    return InMemoryJobQueue(worker_config.queue_name)
