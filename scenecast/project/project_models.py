"""
Project Data Models

Pydantic models for the persisted project record the worker reads and updates.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


class ProjectStatus(str, Enum):
    """Lifecycle of a project; moves forward only, `failed` is terminal"""
    STORYBOARD = "storyboard"
    SETTINGS = "settings"
    BREAKDOWN = "breakdown"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def can_transition(self, target: "ProjectStatus") -> bool:
        """Whether moving from this status to `target` is allowed"""
        if self == ProjectStatus.FAILED:
            return target == ProjectStatus.FAILED
        if target == ProjectStatus.FAILED:
            return True
        return target.rank >= self.rank


_STATUS_ORDER = [
    ProjectStatus.STORYBOARD,
    ProjectStatus.SETTINGS,
    ProjectStatus.BREAKDOWN,
    ProjectStatus.GENERATING,
    ProjectStatus.COMPLETED,
    ProjectStatus.FAILED,
]


class JobRecordStatus(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class JobType(str, Enum):
    CREATE_VIDEO = "CREATE_VIDEO"
    REGENERATE_SCENE = "REGENERATE_SCENE"


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    SQUARE = "1:1"
    PORTRAIT = "9:16"


class Scene(BaseModel):
    """One narrated visual unit of the final video"""
    id: str
    order: int = Field(ge=0)
    image_url: str
    image_description: str = ""
    voice_over: str = ""
    duration: Optional[float] = None  # populated after narration synthesis


class Character(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    appearance: Optional[str] = None
    clothing: Optional[str] = None
    voice: Optional[str] = None
    age: Optional[str] = None


class Breakdown(BaseModel):
    scenes: List[Scene] = Field(default_factory=list)
    music_description: Optional[str] = None

    def ordered_scenes(self) -> List[Scene]:
        return sorted(self.scenes, key=lambda s: s.order)

    def scene_number_base(self) -> int:
        """Offset that turns a scene order into a 1-based scene number"""
        if not self.scenes:
            return 1
        return 1 if min(s.order for s in self.scenes) == 0 else 0


class Settings(BaseModel):
    project_name: str = ""
    video_model: str
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    video_style: Optional[str] = None
    cinematic_inspiration: Optional[str] = None
    characters: List[Character] = Field(default_factory=list)


class Concept(BaseModel):
    option: Optional[str] = None
    content: Optional[str] = None
    format: Optional[str] = None
    genre: Optional[str] = None
    tone: Optional[str] = None
    voice_id: Optional[str] = None


class JobRecord(BaseModel):
    """Progress-history entry keyed by job id inside Project.history"""
    job_id: str
    status: JobRecordStatus = JobRecordStatus.QUEUED
    type: JobType = JobType.CREATE_VIDEO
    progress: int = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None
    error_message: Optional[str] = None
    scene_id: Optional[str] = None


class VideoData(BaseModel):
    """Final output recorded on the project"""
    duration: Optional[float] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    file_size: Optional[int] = None


class Project(BaseModel):
    id: str
    user_id: str
    project_name: Optional[str] = None
    status: ProjectStatus = ProjectStatus.STORYBOARD
    current_job_id: Optional[str] = None
    concept: Optional[Concept] = None
    breakdown: Optional[Breakdown] = None
    settings: Optional[Settings] = None
    history: Dict[str, JobRecord] = Field(default_factory=dict)
    video: Optional[VideoData] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def voice_id(self) -> Optional[str]:
        return self.concept.voice_id if self.concept else None
