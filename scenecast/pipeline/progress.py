"""Monotonic job progress persisted to the project history"""

import asyncio
import logging
from typing import Callable

from ..project.project_store import ProjectStore


class ProgressTracker:
    """Persists a single non-decreasing percentage for one job"""

    def __init__(self, store: ProjectStore, project_id: str, job_id: str):
        self.store = store
        self.project_id = project_id
        self.job_id = job_id
        self.current = 0
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger('scenecast.progress')

    async def update(self, progress: float) -> int:
        value = int(min(100, max(0, round(progress))))
        async with self._lock:
            if value <= self.current:
                return self.current
            self.current = value
            await self.store.update_job_progress(self.project_id, self.job_id, value)
            return value

    def stage(self, start: float, end: float) -> Callable[[float], "asyncio.Future"]:
        """Callback mapping a 0..1 fraction of a stage onto [start, end]"""
        def report(fraction: float):
            fraction = min(1.0, max(0.0, fraction))
            return self.update(start + fraction * (end - start))
        return report
