"""Data models for long-running generation jobs"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


class GenerationKind(str, Enum):
    VIDEO = "video"
    MUSIC = "music"


class GenerationJobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProviderState(str, Enum):
    """Status values reported by queue-style generation APIs"""
    IN_QUEUE = "IN_QUEUE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PollState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class ProviderStatus(BaseModel):
    """One status query result"""
    state: ProviderState
    result_url: Optional[str] = None
    error: Optional[str] = None


class GenerationJob(BaseModel):
    """An asynchronous request to a generation provider"""
    request_id: str
    storage_key: str
    status: GenerationJobStatus = GenerationJobStatus.PROCESSING
    model_id: str
    kind: GenerationKind = GenerationKind.VIDEO
    job_id: Optional[str] = None
    scene_id: Optional[str] = None
    scene_order: Optional[int] = None
    scene_number: Optional[int] = None
    poll_state: PollState = PollState.SUBMITTED
    error: Optional[str] = None
    result_url: Optional[str] = None
    request_payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        if self.kind == GenerationKind.MUSIC:
            return "music"
        if self.scene_number is not None:
            return f"scene {self.scene_number}"
        if self.scene_order is not None:
            return f"scene {self.scene_order}"
        return self.request_id
