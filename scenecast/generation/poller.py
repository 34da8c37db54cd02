"""
Generation Job Poller

Submits long-running render jobs (scene videos, background music) to the
provider serving the requested model, polls them at a fixed interval and
streams finished results into durable storage.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import aiohttp

from .generation_models import (
    GenerationJob, GenerationJobStatus, GenerationKind, PollState, ProviderState
)
from .poll_state import batch_outcome, job_status_for, next_poll_state
from .providers import ProviderRegistry
from ..project.project_models import Scene, Settings
from ..storage import storage_keys
from ..storage.storage import StorageBackend
from ..utils.errors import PollTimeoutError, ProviderError, StorageError

ProgressCallback = Callable[[float], Union[None, Awaitable[None]]]


def snap_duration(requested: int, supported: Sequence[int]) -> int:
    """Shortest supported length that covers `requested`, else the longest one"""
    if not supported:
        return requested
    covering = [d for d in supported if d >= requested]
    return min(covering) if covering else max(supported)


class JobPoller:
    """Submit/poll/download for asynchronous generation providers"""

    def __init__(self,
                 registry: ProviderRegistry,
                 storage: StorageBackend,
                 http_session: aiohttp.ClientSession,
                 interval: float = 10.0,
                 max_attempts: int = 120,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 download_timeout: int = 300):
        self.registry = registry
        self.storage = storage
        self.http_session = http_session
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.download_timeout = download_timeout
        self.logger = logging.getLogger('scenecast.poller')

    async def submit(self,
                     model_id: str,
                     prompt: str,
                     reference_assets: Sequence[str],
                     storage_key: str,
                     config: Optional[Dict[str, Any]] = None,
                     kind: GenerationKind = GenerationKind.VIDEO,
                     scene: Optional[Scene] = None,
                     job_id: Optional[str] = None,
                     scene_number: Optional[int] = None) -> GenerationJob:
        """Submit one generation request; the returned job is `processing`"""
        model, provider = self.registry.resolve(model_id, kind)

        payload: Dict[str, Any] = {"prompt": prompt}
        if reference_assets:
            payload["image_url"] = reference_assets[0]
            if len(reference_assets) > 1:
                payload["reference_image_urls"] = list(reference_assets[1:])
        payload.update(model.default_config)
        payload.update(config or {})

        if scene is not None:
            label = f"scene {scene_number if scene_number is not None else scene.order}"
        else:
            label = kind.value
        self.logger.info(f"📤 Submitting {label} to {provider.name} ({model.name})")
        try:
            request_id = await provider.submit(model, payload)
        except ProviderError as e:
            if scene is not None and e.scene_order is None:
                e.scene_order = scene.order
            raise

        return GenerationJob(
            request_id=request_id,
            storage_key=storage_key,
            status=GenerationJobStatus.PROCESSING,
            model_id=model_id,
            kind=kind,
            job_id=job_id,
            scene_id=scene.id if scene is not None else None,
            scene_order=scene.order if scene is not None else None,
            scene_number=scene_number,
            request_payload=payload,
        )

    async def submit_scene_video(self,
                                 scene: Scene,
                                 settings: Settings,
                                 user_id: str,
                                 project_id: str,
                                 job_id: str,
                                 scene_number: int) -> GenerationJob:
        """Image-to-video request for one scene"""
        storage_key = storage_keys.scene_video_key(user_id, project_id, scene_number)
        return await self.submit(
            settings.video_model,
            prompt=scene.image_description,
            reference_assets=[scene.image_url],
            storage_key=storage_key,
            config={"aspect_ratio": settings.aspect_ratio.value},
            kind=GenerationKind.VIDEO,
            scene=scene,
            job_id=job_id,
            scene_number=scene_number,
        )

    async def submit_music(self,
                           prompt: str,
                           duration: int,
                           user_id: str,
                           project_id: str,
                           job_id: str,
                           model_id: str = "cassette-ai") -> GenerationJob:
        """Background music request spanning roughly `duration` seconds"""
        model, _ = self.registry.resolve(model_id, GenerationKind.MUSIC)
        duration = snap_duration(duration, model.supported_durations)
        storage_key = storage_keys.music_key(user_id, project_id)
        self.logger.info(f"🎵 Generating music using {model_id} for {duration}s")
        return await self.submit(
            model_id,
            prompt=prompt,
            reference_assets=[],
            storage_key=storage_key,
            config={"duration": duration},
            kind=GenerationKind.MUSIC,
            job_id=job_id,
        )

    async def poll_batch(self,
                         jobs: List[GenerationJob],
                         on_progress: Optional[ProgressCallback] = None) -> List[GenerationJob]:
        """
        Poll jobs until all complete, one fails, or attempts run out.

        Raises:
            ProviderError: the first job reported failed (fail-fast)
            PollTimeoutError: max attempts reached with jobs still processing
        """
        if not jobs:
            return []

        total = len(jobs)
        attempts = 0
        while True:
            await self.sleep(self.interval)
            attempts += 1

            for job in jobs:
                if job.status != GenerationJobStatus.PROCESSING:
                    continue
                await self._check_job(job, attempts)
                if job.status == GenerationJobStatus.FAILED:
                    raise ProviderError(
                        f"{job.kind.value.capitalize()} generation failed for {job.label}: {job.error}",
                        scene_order=job.scene_order,
                        reason=job.error,
                    )

            completed = sum(1 for j in jobs if j.status == GenerationJobStatus.COMPLETED)
            self.logger.info(f"Poll {attempts}/{self.max_attempts}: {completed}/{total} jobs completed")
            if on_progress is not None:
                result = on_progress(completed / total)
                if asyncio.iscoroutine(result):
                    await result

            outcome = batch_outcome(jobs, attempts, self.max_attempts)
            if outcome == PollState.COMPLETED:
                return sorted(jobs, key=_order_key)
            if outcome == PollState.TIMED_OUT:
                incomplete = [j for j in jobs if j.status != GenerationJobStatus.COMPLETED]
                for job in incomplete:
                    job.poll_state = PollState.TIMED_OUT
                labels = [j.label for j in sorted(incomplete, key=_order_key)]
                noun = incomplete[0].kind.value.capitalize()
                raise PollTimeoutError(
                    f"{noun} generation timed out. {len(incomplete)} jobs incomplete: {', '.join(labels)}",
                    incomplete=labels,
                )

    async def _check_job(self, job: GenerationJob, attempts: int) -> None:
        model, provider = self.registry.resolve(job.model_id, job.kind)
        try:
            status = await provider.check_status(model, job.request_id)
        except ProviderError as e:
            status = None
            observed = ProviderState.FAILED
            job.error = str(e)
        else:
            observed = status.state

        if observed == ProviderState.COMPLETED:
            try:
                await self._store_result(job, status.result_url, model.content_type)
            except (ProviderError, StorageError) as e:
                observed = ProviderState.FAILED
                job.error = f"Failed to store result: {e}"
            else:
                job.result_url = status.result_url
        elif observed == ProviderState.FAILED and status is not None:
            job.error = status.error or "provider reported failure"

        job.poll_state = next_poll_state(job.poll_state, observed, attempts, self.max_attempts)
        # timeout is decided for the batch as a whole
        if job.poll_state != PollState.TIMED_OUT:
            job.status = job_status_for(job.poll_state)
        if job.status == GenerationJobStatus.COMPLETED:
            self.logger.info(f"✅ {job.label} completed and stored at {job.storage_key}")

    async def _store_result(self, job: GenerationJob, url: str, content_type: str) -> None:
        timeout = aiohttp.ClientTimeout(total=self.download_timeout)
        try:
            async with self.http_session.get(url, timeout=timeout) as response:
                if response.status >= 400:
                    raise ProviderError(f"Failed to download {job.label} result: HTTP {response.status}")
                data = await response.read()
        except aiohttp.ClientError as e:
            raise ProviderError(f"Failed to download {job.label} result: {e}") from e
        await self.storage.upload_buffer(data, job.storage_key, content_type)


def _order_key(job: GenerationJob) -> int:
    return job.scene_order if job.scene_order is not None else -1
