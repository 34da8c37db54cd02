"""
Automation Data Models

Pydantic models for the job queue and worker.
"""

import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum

from ..project.project_models import JobType


class QueueJob(BaseModel):
    """A unit of work on the video-processing queue"""
    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    video_id: str
    user_id: str
    type: JobType = JobType.CREATE_VIDEO
    # Generation calls are billed, so a job is delivered exactly once
    attempts: int = Field(default=1, ge=1, le=1)
    enqueued_at: datetime = Field(default_factory=datetime.now)


class JobEventType(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class JobEvent(BaseModel):
    """Outcome published after a job finishes"""
    job_id: str
    video_id: str
    event: JobEventType
    error_message: Optional[str] = None
    video_url: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class WorkerStats(BaseModel):
    """Worker performance counters"""
    processed: int = 0
    completed: int = 0
    failed: int = 0
    active: int = 0
    started_at: datetime = Field(default_factory=datetime.now)

    @property
    def success_rate(self) -> float:
        if self.processed == 0:
            return 0.0
        return (self.completed / self.processed) * 100
