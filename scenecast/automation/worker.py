"""
Pipeline Worker

Consumes jobs from the queue and runs one pipeline invocation per slot.
Failed jobs are reported as failure events and never retried.
"""

import asyncio
from typing import Set

from .automation_models import QueueJob, WorkerStats
from .job_queue import JobQueue
from ..project.project_models import JobType
from ..utils.errors import ValidationError
from ..utils.logger import LoggerMixin


class PipelineWorker(LoggerMixin):
    """Bounded pool over a job queue"""

    def __init__(self, queue: JobQueue, pipeline, concurrency: int = 1,
                 dequeue_timeout: float = 5):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.queue = queue
        self.pipeline = pipeline
        self.concurrency = concurrency
        self.dequeue_timeout = dequeue_timeout
        self.stats = WorkerStats()

        self._slots = asyncio.Semaphore(concurrency)
        self._tasks: Set[asyncio.Task] = set()
        self._stopping = asyncio.Event()

    async def handle(self, job: QueueJob) -> bool:
        """Process one job; returns True on success"""
        self.stats.active += 1
        self.logger.info(f"Processing job {job.job_id} for video {job.video_id}")
        try:
            if job.type != JobType.CREATE_VIDEO:
                raise ValidationError(f"Unsupported job type: {job.type.value}")
            video = await self.pipeline.process_video(job.job_id, job.video_id, job.user_id)
        except Exception as e:
            self.stats.failed += 1
            message = str(e) or e.__class__.__name__
            self.logger.error(f"Job {job.job_id} failed: {message}")
            await self.queue.publish_failure(job, message)
            return False
        else:
            self.stats.completed += 1
            self.logger.info(f"Job {job.job_id} completed")
            await self.queue.publish_completion(job, video)
            return True
        finally:
            self.stats.active -= 1
            self.stats.processed += 1

    def _spawn(self, job: QueueJob) -> None:
        async def run_slot():
            try:
                await self.handle(job)
            finally:
                self._slots.release()

        task = asyncio.create_task(run_slot())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run(self) -> WorkerStats:
        """Consume until stop() is called, then wait for in-flight jobs"""
        self.logger.info(f"Worker listening on '{self.queue.name}' with concurrency {self.concurrency}")
        while not self._stopping.is_set():
            await self._slots.acquire()
            if self._stopping.is_set():
                self._slots.release()
                break
            job = await self.queue.dequeue(timeout=self.dequeue_timeout)
            if job is None:
                self._slots.release()
                continue
            self._spawn(job)
        await self._drain()
        self.logger.info(f"Worker stopped: {self.stats.completed} completed, {self.stats.failed} failed")
        return self.stats

    async def run_until_empty(self) -> WorkerStats:
        """Process whatever is queued right now, then return"""
        while True:
            await self._slots.acquire()
            job = await self.queue.dequeue(timeout=0)
            if job is None:
                self._slots.release()
                break
            self._spawn(job)
        await self._drain()
        return self.stats

    def stop(self) -> None:
        self._stopping.set()

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)
