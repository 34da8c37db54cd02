"""Process-wide clients shared by pipeline invocations"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import aiohttp
from openai import AsyncOpenAI

from ..generation.music_prompt import MusicPromptOptimizer
from ..generation.poller import JobPoller
from ..generation.providers import ProviderRegistry
from ..llm.openai_client import create_openai_client
from ..media_generation.tts_engine import ElevenLabsTTSProvider, NarrationSynthesizer
from ..project.project_store import ProjectStore, YamlProjectStore
from ..storage.storage import LocalStorage, StorageBackend
from ..utils.config import Config
from ..video_assembly.media_tool import MediaTool
from ..video_assembly.scene_compositor import SceneCompositor
from ..video_assembly.video_assembler import VideoAssembler

logger = logging.getLogger('scenecast.context')


@dataclass
class PipelineContext:
    """Explicitly constructed collaborators; the owner closes them on shutdown"""
    config: Config
    store: ProjectStore
    storage: StorageBackend
    poller: JobPoller
    synthesizer: NarrationSynthesizer
    compositor: SceneCompositor
    assembler: VideoAssembler
    music_prompt: MusicPromptOptimizer
    http_session: Optional[aiohttp.ClientSession] = None
    openai_client: Optional[AsyncOpenAI] = None

    async def close(self) -> None:
        if self.openai_client is not None:
            await self.openai_client.close()
            self.openai_client = None
        if self.http_session is not None and not self.http_session.closed:
            await self.http_session.close()
        self.http_session = None


async def build_context(config: Config) -> PipelineContext:
    """Construct every client the pipeline needs from configuration"""
    session = aiohttp.ClientSession()
    media_tool = MediaTool()

    storage = LocalStorage(config.storage.root, config.storage.public_base_url)
    store = YamlProjectStore(config.persistence.projects_dir)

    registry = ProviderRegistry.from_config(config, session)
    poller = JobPoller(
        registry, storage, session,
        interval=config.polling.interval_seconds,
        max_attempts=config.polling.max_attempts,
    )

    tts = ElevenLabsTTSProvider(config.tts, session)
    synthesizer = NarrationSynthesizer(tts, media_tool, config.tts)

    openai_client = None
    if config.music.optimize_prompt and os.getenv("OPENAI_API_KEY"):
        openai_client = create_openai_client()
    elif config.music.optimize_prompt:
        logger.warning("OPENAI_API_KEY not set, music descriptions will be truncated instead of optimized")

    return PipelineContext(
        config=config,
        store=store,
        storage=storage,
        poller=poller,
        synthesizer=synthesizer,
        compositor=SceneCompositor(media_tool, config.video, config.subtitles),
        assembler=VideoAssembler(media_tool, config.video),
        music_prompt=MusicPromptOptimizer(openai_client, config.music),
        http_session=session,
        openai_client=openai_client,
    )
