"""Persistence for project records

The record is read-modify-written as a whole. Writers inside one worker
process are serialized with a per-project lock, but nothing coordinates
separate processes: concurrent updates to the same project from two workers
are last-writer-wins and can lose history entries.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import yaml

from .project_models import (
    Project, ProjectStatus, JobRecord, JobRecordStatus, JobType, VideoData
)
from ..utils.errors import StorageError


class ProjectStore(ABC):
    """Read/update access to project records"""

    def __init__(self):
        self.logger = logging.getLogger('scenecast.project_store')
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, project_id: str) -> asyncio.Lock:
        if project_id not in self._locks:
            self._locks[project_id] = asyncio.Lock()
        return self._locks[project_id]

    @abstractmethod
    async def get(self, project_id: str) -> Optional[Project]:
        """Load a project, or None when it does not exist"""

    @abstractmethod
    async def save(self, project: Project) -> None:
        """Persist the whole project record"""

    async def update_job_progress(self, project_id: str, job_id: str, progress: int,
                                  status: ProjectStatus = ProjectStatus.GENERATING) -> Optional[Project]:
        """Record in-flight progress for a job"""
        async with self._lock_for(project_id):
            project = await self.get(project_id)
            if project is None:
                return None
            self._apply_status(project, job_id, status)
            record = self._record_for(project, job_id)
            record.status = JobRecordStatus.PROCESSING
            record.progress = progress
            record.updated_at = datetime.now()
            await self.save(project)
            self.logger.info(f"Updated project {project_id} - {project.status.value} ({progress}%)")
            return project

    async def complete_job(self, project_id: str, job_id: str, video: VideoData) -> Optional[Project]:
        """Mark the job and project completed and attach the final video data"""
        async with self._lock_for(project_id):
            project = await self.get(project_id)
            if project is None:
                return None
            self._apply_status(project, job_id, ProjectStatus.COMPLETED)
            record = self._record_for(project, job_id)
            record.status = JobRecordStatus.COMPLETED
            record.progress = 100
            record.updated_at = datetime.now()
            record.error_message = None
            project.video = video
            await self.save(project)
            return project

    async def fail_job(self, project_id: str, job_id: str, error_message: str) -> Optional[Project]:
        """Mark the job and project failed with the error message"""
        async with self._lock_for(project_id):
            project = await self.get(project_id)
            if project is None:
                return None
            self._apply_status(project, job_id, ProjectStatus.FAILED)
            record = self._record_for(project, job_id)
            record.status = JobRecordStatus.FAILED
            record.updated_at = datetime.now()
            record.error_message = error_message
            await self.save(project)
            return project

    async def update_scene_durations(self, project_id: str, durations: Dict[str, float]) -> Optional[Project]:
        """Store narration durations on the breakdown's scenes, keyed by scene id"""
        async with self._lock_for(project_id):
            project = await self.get(project_id)
            if project is None or project.breakdown is None:
                return project
            if project.status == ProjectStatus.FAILED:
                self.logger.warning(f"Project {project_id} has failed, not updating scene durations")
                return project
            for scene in project.breakdown.scenes:
                if scene.id in durations:
                    scene.duration = durations[scene.id]
            project.updated_at = datetime.now()
            await self.save(project)
            return project

    def _record_for(self, project: Project, job_id: str) -> JobRecord:
        record = project.history.get(job_id)
        if record is None:
            record = JobRecord(job_id=job_id, type=JobType.CREATE_VIDEO)
            project.history[job_id] = record
        return record

    def _apply_status(self, project: Project, job_id: str, status: ProjectStatus) -> None:
        # A new job starts a fresh run; within a run the status only moves forward
        if project.current_job_id != job_id:
            project.current_job_id = job_id
            project.status = status
        elif project.status.can_transition(status):
            project.status = status
        else:
            self.logger.warning(
                f"Ignoring status change {project.status.value} -> {status.value} "
                f"for project {project.id}"
            )
        project.updated_at = datetime.now()


class YamlProjectStore(ProjectStore):
    """One YAML document per project under a directory"""

    def __init__(self, directory: str):
        super().__init__()
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, project_id: str) -> Path:
        if not project_id or '/' in project_id or '\\' in project_id or project_id.startswith('.'):
            raise StorageError(f"Invalid project id: {project_id!r}")
        return self.directory / f"{project_id}.yaml"

    async def get(self, project_id: str) -> Optional[Project]:
        path = self._path(project_id)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Failed to read project {project_id}: {e}") from e
        return Project(**data)

    async def save(self, project: Project) -> None:
        path = self._path(project.id)
        tmp_path = path.with_suffix('.yaml.tmp')
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(project.model_dump(mode='json'), f,
                               default_flow_style=False, sort_keys=False)
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write project {project.id}: {e}") from e
