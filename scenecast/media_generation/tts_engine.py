"""Text-to-Speech with character-level alignment for word-timed subtitles"""

import base64
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import aiohttp
import ffmpeg

from .alignment import words_from_alignment
from .media_models import CharacterAlignment, NarrationResult, SpeechResult
from ..project.project_models import Scene
from ..utils.config import TTSConfig
from ..utils.concurrency import gather_fail_fast
from ..utils.errors import ProviderError, ValidationError


class TTSProvider(ABC):
    """Black-box speech synthesis returning audio plus character timing"""

    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> SpeechResult:
        ...


class ElevenLabsTTSProvider(TTSProvider):
    """ElevenLabs `with-timestamps` endpoint over aiohttp"""

    def __init__(self, config: TTSConfig, session: aiohttp.ClientSession):
        self.config = config
        self.session = session
        self.logger = logging.getLogger('scenecast.tts.elevenlabs')

    async def synthesize(self, text: str, voice_id: str) -> SpeechResult:
        api_key = self.config.api_key()
        if not api_key:
            raise ProviderError(f"{self.config.api_key_env} environment variable is required")

        url = f"{self.config.base_url.rstrip('/')}/v1/text-to-speech/{voice_id}/with-timestamps"
        headers = {"xi-api-key": api_key, "Content-Type": "application/json"}
        body = {"text": text, "model_id": self.config.model_id}
        params = {"output_format": self.config.output_format}
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        try:
            async with self.session.post(url, json=body, params=params,
                                         headers=headers, timeout=timeout) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise ProviderError(f"TTS request failed with HTTP {response.status}: {detail[:300]}",
                                        reason=detail[:300])
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ProviderError(f"TTS request failed: {e}", reason=str(e)) from e

        audio_b64 = data.get("audio_base64")
        if not audio_b64:
            raise ProviderError("TTS response contained no audio")

        return SpeechResult(
            audio=base64.b64decode(audio_b64),
            alignment=_parse_alignment(data.get("alignment")),
            normalized_alignment=_parse_alignment(data.get("normalized_alignment")),
        )


def _parse_alignment(data: Optional[dict]) -> Optional[CharacterAlignment]:
    if not data or not data.get("characters"):
        return None
    try:
        return CharacterAlignment(**data)
    except ValueError as e:
        raise ProviderError(f"Malformed alignment in TTS response: {e}") from e


class NarrationSynthesizer:
    """Per-scene narration: speech, word timestamps and silence padding"""

    def __init__(self, tts: TTSProvider, media_tool, config: TTSConfig):
        self.tts = tts
        self.media_tool = media_tool
        self.config = config
        self.logger = logging.getLogger('scenecast.narration')

    async def synthesize_scene(self, scene: Scene, voice_id: Optional[str], work_dir: Path,
                               scene_number: Optional[int] = None) -> NarrationResult:
        """Generate padded narration audio and its word timestamps for one scene"""
        text = (scene.voice_over or "").strip()
        number = scene_number if scene_number is not None else scene.order
        if not text:
            raise ValidationError(f"Scene {number} has no narration text")

        voice_id = voice_id or self.config.default_voice_id
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        raw_path = work_dir / f"scene-{number}-raw.mp3"
        padded_path = work_dir / f"scene-{number}-audio.wav"
        timestamps_path = work_dir / f"scene-{number}-timestamps.json"

        self.logger.info(f"Generating voice over with timestamps for scene {number}...")
        try:
            speech = await self.tts.synthesize(text, voice_id)
        except ProviderError as e:
            e.scene_order = scene.order
            raise

        raw_path.write_bytes(speech.audio)
        self.logger.info(f"✅ Generated raw voice over for scene {number}")

        if speech.best_alignment is None:
            self.logger.warning(f"No character alignment data for scene {number}")
        words = words_from_alignment(speech.best_alignment)
        with open(timestamps_path, 'w', encoding='utf-8') as f:
            json.dump([w.model_dump() for w in words], f, indent=2)

        await self.pad_audio(raw_path, padded_path)
        duration = await self.media_tool.probe_duration(padded_path)

        return NarrationResult(
            scene_order=scene.order,
            scene_id=scene.id,
            audio_path=padded_path,
            word_timestamps=words,
            duration=duration,
            lead_in_padding=self.config.lead_in_padding_seconds,
        )

    async def pad_audio(self, input_path: Path, output_path: Path) -> Path:
        """Add configured silence before and after the narration"""
        audio = ffmpeg.input(str(input_path)).audio
        lead_in = self.config.lead_in_padding_seconds
        tail = self.config.tail_padding_seconds
        if lead_in > 0:
            audio = audio.filter('adelay', delays=int(round(lead_in * 1000)), all=1)
        if tail > 0:
            audio = audio.filter('apad', pad_dur=tail)
        stream = ffmpeg.output(audio, str(output_path), acodec='pcm_s16le', ar=44100)
        await self.media_tool.run(stream, description=f"Padding narration {input_path.name}")
        return output_path

    async def synthesize_all(self, scenes: List[Scene], voice_id: Optional[str], work_dir: Path,
                             scene_number_base: int = 0) -> List[NarrationResult]:
        """Synthesize every scene concurrently; the first failure aborts the batch"""
        results = await gather_fail_fast(
            self.synthesize_scene(scene, voice_id, work_dir, scene.order + scene_number_base)
            for scene in scenes
        )
        return sorted(results, key=lambda r: r.scene_order)
