"""
Automation System

Queue consumption and the worker pool that runs video pipelines.
"""

from .worker import PipelineWorker
from .job_queue import JobQueue, InMemoryJobQueue, RedisJobQueue, create_job_queue
from .automation_models import QueueJob, JobEvent, WorkerStats

__all__ = [
    'PipelineWorker',
    'JobQueue',
    'InMemoryJobQueue',
    'RedisJobQueue',
    'create_job_queue',
    'QueueJob',
    'JobEvent',
    'WorkerStats'
]
