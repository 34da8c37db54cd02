"""
Video Pipeline

Drives one CREATE_VIDEO job from scene breakdown to finished video:
render scene clips, render music, narrate, compose each scene, assemble,
then record the result on the project.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from .context import PipelineContext
from .progress import ProgressTracker
from ..generation.generation_models import GenerationJob
from ..generation.music_prompt import estimate_music_duration
from ..media_generation.media_models import NarrationResult
from ..project.project_models import Project, Scene, VideoData
from ..storage import storage_keys
from ..utils.concurrency import gather_fail_fast
from ..utils.errors import ValidationError
from ..video_assembly.video_models import ComposedScene

# Stage boundaries of the persisted progress percentage
PROGRESS_START = 5
PROGRESS_VIDEOS_DONE = 25
PROGRESS_MUSIC_DONE = 40
PROGRESS_NARRATION_DONE = 50
PROGRESS_SCENES_DONE = 75
PROGRESS_COMBINED = 82
PROGRESS_MUSIC_MIXED = 90
PROGRESS_THUMBNAIL = 95


class VideoPipeline:
    """Stage orchestration for a single project render"""

    def __init__(self, context: PipelineContext):
        self.ctx = context
        self.config = context.config
        self.logger = logging.getLogger('scenecast.pipeline')

    def _validate(self, project: Project) -> None:
        if project.breakdown is None or not project.breakdown.scenes:
            raise ValidationError("Missing breakdown or scenes data")
        if project.settings is None:
            raise ValidationError("Missing settings data")
        orders = [s.order for s in project.breakdown.scenes]
        if len(set(orders)) != len(orders):
            raise ValidationError("Scene orders must be unique")
        base = project.breakdown.scene_number_base()
        for scene in project.breakdown.ordered_scenes():
            if not (scene.voice_over or "").strip():
                raise ValidationError(f"Scene {scene.order + base} has no narration text")
        # unknown models fail here, before anything is submitted
        self.ctx.poller.registry.resolve(project.settings.video_model)

    async def process_video(self, job_id: str, video_id: str, user_id: str) -> VideoData:
        """Run the full pipeline for one job.

        The project is marked failed and the error re-raised on any stage
        failure; the job's temp directory is removed on every exit path.
        """
        self.logger.info(f"🎬 Processing video {video_id} (job {job_id})")
        project = await self.ctx.store.get(video_id)
        if project is None:
            raise ValidationError(f"Project {video_id} not found")

        work_dir = Path(self.config.paths.temp) / job_id
        try:
            self._validate(project)
            work_dir.mkdir(parents=True, exist_ok=True)
            video = await self._run_stages(project, job_id, user_id, work_dir)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            self.logger.error(f"❌ Video processing failed for {video_id}: {message}")
            await self._mark_failed(video_id, job_id, message)
            raise
        finally:
            if work_dir.exists():
                shutil.rmtree(work_dir, ignore_errors=True)
                self.logger.info(f"Cleaned up temporary files for job {job_id}")

        self.logger.info(f"✅ Video processing completed for {video_id}")
        return video

    async def _mark_failed(self, video_id: str, job_id: str, message: str) -> None:
        try:
            await self.ctx.store.fail_job(video_id, job_id, message)
        except Exception as e:
            # the original error is what the queue needs to see
            self.logger.error(f"Could not record failure for {video_id}: {e}")

    async def _run_stages(self, project: Project, job_id: str, user_id: str, work_dir: Path) -> VideoData:
        breakdown = project.breakdown
        settings = project.settings
        scenes = breakdown.ordered_scenes()
        base = breakdown.scene_number_base()
        tracker = ProgressTracker(self.ctx.store, project.id, job_id)

        await tracker.update(PROGRESS_START)

        # Scene clips
        self.logger.info(f"Generating {len(scenes)} scene videos with {settings.video_model}")
        video_jobs = await gather_fail_fast([
            self.ctx.poller.submit_scene_video(scene, settings, user_id, project.id, job_id,
                                               scene.order + base)
            for scene in scenes
        ])
        video_jobs = await self.ctx.poller.poll_batch(
            video_jobs, tracker.stage(PROGRESS_START, PROGRESS_VIDEOS_DONE))
        await tracker.update(PROGRESS_VIDEOS_DONE)

        # Background music
        self.logger.info("Generating background music")
        music_job = await self._generate_music(project, scenes, job_id, user_id, tracker)
        await tracker.update(PROGRESS_MUSIC_DONE)

        # Narration
        self.logger.info(f"Synthesizing narration for {len(scenes)} scenes")
        narrations = await self.ctx.synthesizer.synthesize_all(
            scenes, project.voice_id, work_dir, scene_number_base=base)
        await self._upload_narrations(narrations, user_id, project.id, base)
        await self.ctx.store.update_scene_durations(
            project.id, {n.scene_id: n.duration for n in narrations})
        await tracker.update(PROGRESS_NARRATION_DONE)

        # Per-scene composition
        self.logger.info("Composing scenes with narration and subtitles")
        composed = await self._compose_scenes(video_jobs, narrations, work_dir, base, tracker)
        await tracker.update(PROGRESS_SCENES_DONE)

        # Assembly
        self.logger.info(f"Assembling {len(composed)} scenes")
        combined = await self.ctx.assembler.combine_videos(
            [c.path for c in composed],
            work_dir / "combined.mp4",
            transition=self.config.video.transition,
            transition_duration=self.config.video.transition_duration,
        )
        await tracker.update(PROGRESS_COMBINED)

        music_path = await self.ctx.storage.download_file(music_job.storage_key, work_dir / "music.wav")
        final_path = await self.ctx.assembler.add_music_to_video(
            combined, music_path, work_dir / "final-video.mp4", volume=self.config.video.music_volume)
        await tracker.update(PROGRESS_MUSIC_MIXED)

        thumbnail_path = await self.ctx.assembler.generate_thumbnail(
            final_path, work_dir / "thumbnail.jpg",
            at_seconds=self.config.video.thumbnail_time_seconds,
            aspect_ratio=settings.aspect_ratio,
        )
        await tracker.update(PROGRESS_THUMBNAIL)

        file_size = final_path.stat().st_size
        video_url = await self.ctx.storage.upload_file(
            final_path, storage_keys.final_video_key(user_id, project.id), "video/mp4")
        thumbnail_url = await self.ctx.storage.upload_file(
            thumbnail_path, storage_keys.thumbnail_key(user_id, project.id), "image/jpeg")

        video = VideoData(
            duration=sum(n.duration for n in narrations),
            thumbnail_url=thumbnail_url,
            video_url=video_url,
            file_size=file_size,
        )
        await self.ctx.store.complete_job(project.id, job_id, video)
        return video

    async def _generate_music(self, project: Project, scenes: List[Scene], job_id: str,
                              user_id: str, tracker: ProgressTracker) -> GenerationJob:
        music_config = self.config.music
        prompt = await self.ctx.music_prompt.optimize(project.breakdown.music_description)
        duration = estimate_music_duration(len(scenes), music_config.seconds_per_scene)
        job = await self.ctx.poller.submit_music(prompt, duration, user_id, project.id, job_id,
                                                 model_id=music_config.default_model)
        jobs = await self.ctx.poller.poll_batch(
            [job], tracker.stage(PROGRESS_VIDEOS_DONE, PROGRESS_MUSIC_DONE))
        return jobs[0]

    async def _upload_narrations(self, narrations: List[NarrationResult], user_id: str,
                                 project_id: str, base: int) -> None:
        await gather_fail_fast([
            self.ctx.storage.upload_file(
                n.audio_path,
                storage_keys.scene_audio_key(user_id, project_id, n.scene_order + base),
                "audio/wav",
                remove_local=False,
            )
            for n in narrations
        ])

    async def _compose_scenes(self, video_jobs: List[GenerationJob], narrations: List[NarrationResult],
                              work_dir: Path, base: int, tracker: ProgressTracker) -> List[ComposedScene]:
        by_order = {n.scene_order: n for n in narrations}
        report = tracker.stage(PROGRESS_NARRATION_DONE, PROGRESS_SCENES_DONE)
        total = len(video_jobs)
        done = 0

        async def compose(job: GenerationJob) -> ComposedScene:
            nonlocal done
            number = job.scene_order + base
            clip = await self.ctx.storage.download_file(
                job.storage_key, work_dir / f"scene-{number}-video.mp4")
            composed = await self.ctx.compositor.compose_scene(
                clip, by_order[job.scene_order], work_dir, number)
            done += 1
            await report(done / total)
            return composed

        composed = await gather_fail_fast([compose(job) for job in video_jobs])
        return sorted(composed, key=lambda c: c.scene_order)
