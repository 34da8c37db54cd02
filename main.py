#!/usr/bin/env python3
"""
SceneCast - Main Entry Point
Background worker that turns scene breakdowns into finished narrated videos
"""

import asyncio
import signal
import sys
import uuid
from pathlib import Path

from rich.console import Console
from rich.table import Table
from dotenv import load_dotenv

# Load local env for API keys
load_dotenv(dotenv_path=Path(__file__).parent / ".env")
load_dotenv(dotenv_path=Path(__file__).parent / ".env.local", override=True)

from scenecast.utils.config import Config
from scenecast.utils.logger import setup_logging
from scenecast.automation import PipelineWorker, QueueJob, InMemoryJobQueue, create_job_queue
from scenecast.pipeline import VideoPipeline, build_context

# Ensure UTF-8 console output on Windows to avoid emoji/encoding errors
try:
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
    sys.stderr.reconfigure(encoding='utf-8', errors='replace')
except AttributeError:
    pass

console = Console()


class SceneCastSystem:
    """Main system coordinator for the video processing worker"""

    def __init__(self, config_path: str = "configs/config.yaml"):
        self.config = Config.load(config_path)
        self.logger = setup_logging(self.config)
        console.print("[green]✓[/green] SceneCast initialized")

    async def run_worker(self):
        """Consume jobs from the configured queue until interrupted"""
        context = await build_context(self.config)
        queue = create_job_queue(self.config.worker)
        worker = PipelineWorker(
            queue,
            VideoPipeline(context),
            concurrency=self.config.worker.concurrency,
            dequeue_timeout=self.config.worker.dequeue_timeout_seconds,
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, worker.stop)
            except NotImplementedError:
                # Windows: KeyboardInterrupt ends the loop instead
                pass

        console.print(f"[blue]🚀[/blue] Worker listening on '{self.config.worker.queue_name}' "
                      f"({self.config.worker.backend}, concurrency {self.config.worker.concurrency})")
        try:
            stats = await worker.run()
        finally:
            await queue.close()
            await context.close()
        self._print_stats(stats)

    async def run_single(self, video_id: str, user_id: str, job_id: str = None):
        """Process one project in-process, without a queue backend"""
        context = await build_context(self.config)
        queue = InMemoryJobQueue(self.config.worker.queue_name)
        job = QueueJob(job_id=job_id or str(uuid.uuid4()), video_id=video_id, user_id=user_id)
        await queue.enqueue(job)

        console.print(f"[blue]🎬[/blue] Processing video {video_id} (job {job.job_id})")
        worker = PipelineWorker(queue, VideoPipeline(context), concurrency=1)
        try:
            stats = await worker.run_until_empty()
        finally:
            await context.close()

        event = queue.events[-1] if queue.events else None
        if event is not None and event.event.value == "completed":
            console.print("\n[bold green]🎉 Video Generation Complete![/bold green]")
            console.print(f"[green]✅[/green] Video saved: {event.video_url}")
        elif event is not None:
            console.print(f"[red]❌[/red] Video generation failed: {event.error_message}")
        self._print_stats(stats)
        return stats

    async def enqueue(self, video_id: str, user_id: str, job_id: str = None) -> QueueJob:
        """Push a job onto the configured queue"""
        queue = create_job_queue(self.config.worker)
        job = QueueJob(job_id=job_id or str(uuid.uuid4()), video_id=video_id, user_id=user_id)
        try:
            await queue.enqueue(job)
        finally:
            await queue.close()
        if isinstance(queue, InMemoryJobQueue):
            console.print("[yellow]⚠[/yellow] Memory backend configured; the job only lives in this process")
        console.print(f"[green]✅[/green] Enqueued job {job.job_id} for video {video_id}")
        return job

    def _print_stats(self, stats):
        table = Table(title="Worker statistics")
        table.add_column("Processed")
        table.add_column("Completed")
        table.add_column("Failed")
        table.add_row(str(stats.processed), str(stats.completed), str(stats.failed))
        console.print(table)


def main():
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="SceneCast video processing worker")
    parser.add_argument("--mode", choices=["worker", "single", "enqueue"],
                        default="worker", help="Operation mode")
    parser.add_argument("--video-id", type=str, help="Project id to render (single/enqueue)")
    parser.add_argument("--user-id", type=str, help="Owner of the project (single/enqueue)")
    parser.add_argument("--job-id", type=str, help="Job id; generated when omitted")
    parser.add_argument("--config", type=str, default="configs/config.yaml",
                        help="Path to configuration file")

    args = parser.parse_args()
    if args.mode in ("single", "enqueue") and not (args.video_id and args.user_id):
        parser.error("--video-id and --user-id are required for this mode")

    try:
        system = SceneCastSystem(args.config)

        if args.mode == "worker":
            asyncio.run(system.run_worker())
        elif args.mode == "single":
            stats = asyncio.run(system.run_single(args.video_id, args.user_id, args.job_id))
            if stats.failed:
                sys.exit(1)
        elif args.mode == "enqueue":
            asyncio.run(system.enqueue(args.video_id, args.user_id, args.job_id))

    except KeyboardInterrupt:
        console.print("\n[yellow]⏹️[/yellow] Stopped by user")
    except Exception as e:
        console.print(f"[red]💥[/red] Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
