"""
Scene Compositor

Fits each generated clip to its narration and burns in word-by-word
subtitles. Narration length is authoritative: a clip shorter than its audio
is slowed down, a longer one is trimmed.
"""

import logging
import os
import platform
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import ffmpeg

from .media_tool import MediaTool
from .video_models import (
    ComposedScene, ReconciliationPlan, SubtitleStyle, SUBTITLE_Y
)
from ..media_generation.media_models import NarrationResult, WordTimestamp
from ..utils.config import SubtitleConfig, VideoConfig
from ..utils.errors import MediaProcessingError

DEFAULT_FONT_FILE = "concert-one.ttf"

PLATFORM_FONTS = {
    "Darwin": ["/System/Library/Fonts/Helvetica.ttc"],
    "Windows": ["C:\\Windows\\Fonts\\arial.ttf", "C:\\Windows\\Fonts\\segoeui.ttf"],
    "Linux": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ],
}

_UNSAFE_TEXT = re.compile(r'[^A-Za-z0-9 ]')


def resolve_font_path(custom_font_path: Optional[str] = None,
                      fonts_dir: Optional[str] = None) -> Optional[str]:
    """Custom font, then the bundled fonts directory, then a platform font"""
    if custom_font_path and os.path.exists(custom_font_path):
        return custom_font_path
    if fonts_dir:
        bundled = Path(fonts_dir) / DEFAULT_FONT_FILE
        if bundled.exists():
            return str(bundled)
    for candidate in PLATFORM_FONTS.get(platform.system(), []):
        if os.path.exists(candidate):
            return candidate
    # drawtext falls back to fontconfig's default
    return None


def sanitize_subtitle_text(text: str) -> str:
    return _UNSAFE_TEXT.sub('', text).strip()


def plan_reconciliation(video_duration: float, audio_duration: float) -> ReconciliationPlan:
    """Stretch the clip when narration runs longer, trim it when shorter"""
    if video_duration <= 0:
        raise MediaProcessingError(f"Invalid video duration: {video_duration}")
    if audio_duration <= 0:
        raise MediaProcessingError(f"Invalid audio duration: {audio_duration}")
    if audio_duration > video_duration:
        return ReconciliationPlan(
            video_duration=video_duration,
            audio_duration=audio_duration,
            stretch_factor=audio_duration / video_duration,
            trimmed=False,
        )
    return ReconciliationPlan(
        video_duration=video_duration,
        audio_duration=audio_duration,
        stretch_factor=1.0,
        trimmed=audio_duration < video_duration,
    )


def build_drawtext_directives(words: List[WordTimestamp],
                              style: SubtitleStyle,
                              start_offset: float = 0.0) -> List[Dict[str, Any]]:
    """One drawtext option set per word, visible only while it is spoken"""
    directives = []
    for word in words:
        text = sanitize_subtitle_text(word.word)
        if not text:
            continue
        start = word.start + start_offset
        end = word.end + start_offset
        directive = {
            "text": text,
            "fontsize": style.font_size,
            "fontcolor": style.text_color,
            "bordercolor": style.outline_color,
            "borderw": style.outline_thickness.border_width,
            "x": "(w-text_w)/2",
            "y": SUBTITLE_Y[style.position],
            "enable": f"between(t,{start:.3f},{end:.3f})",
        }
        if style.font_path:
            directive["fontfile"] = style.font_path
        directives.append(directive)
    return directives


def split_batches(directives: List[Dict[str, Any]], batch_size: int) -> List[List[Dict[str, Any]]]:
    """Chunk directives into sequential render passes, preserving order"""
    if batch_size <= 0 or len(directives) <= batch_size:
        return [directives]
    return [directives[i:i + batch_size] for i in range(0, len(directives), batch_size)]


def apply_drawtext(stream, directives: List[Dict[str, Any]]):
    for directive in directives:
        stream = stream.drawtext(**directive)
    return stream


class SceneCompositor:
    """Mux narration into a generated clip and caption it"""

    def __init__(self, media_tool: MediaTool, video_config: VideoConfig, subtitle_config: SubtitleConfig):
        self.media_tool = media_tool
        self.video_config = video_config
        self.subtitle_config = subtitle_config
        self.logger = logging.getLogger('scenecast.scene_compositor')
        self.style = SubtitleStyle.from_config(
            subtitle_config,
            font_path=resolve_font_path(subtitle_config.custom_font_path, subtitle_config.fonts_dir),
        )
        self.logger.info(f"Using font: {self.style.font_path or 'fontconfig default'}")

    def _encode_args(self) -> Dict[str, Any]:
        return {
            "vcodec": self.video_config.codec,
            "preset": self.video_config.preset,
            "crf": self.video_config.crf,
            "pix_fmt": self.video_config.pix_fmt,
            "r": self.video_config.fps,
        }

    async def add_audio_to_video(self, video_path: Path, audio_path: Path,
                                 output_path: Path) -> Tuple[Path, ReconciliationPlan]:
        """Replace the clip's audio with narration, stretching or trimming the picture to fit"""
        video_duration = await self.media_tool.probe_duration(video_path)
        audio_duration = await self.media_tool.probe_duration(audio_path)
        plan = plan_reconciliation(video_duration, audio_duration)
        self.logger.info(
            f"Video duration: {video_duration:.2f}s, audio duration: {audio_duration:.2f}s, "
            f"stretch factor: {plan.stretch_factor:.3f}"
        )

        video = ffmpeg.input(str(video_path)).video
        if plan.stretch_factor != 1.0:
            video = video.filter('setpts', f"{plan.stretch_factor:.6f}*PTS")
        elif plan.trimmed:
            video = video.filter('trim', start=0, end=f"{audio_duration:.3f}").filter('setpts', 'PTS-STARTPTS')
        audio = ffmpeg.input(str(audio_path)).audio

        stream = ffmpeg.output(video, audio, str(output_path),
                               acodec=self.video_config.audio_codec, **self._encode_args())
        await self.media_tool.run(stream, description=f"Muxing narration into {Path(video_path).name}")
        return Path(output_path), plan

    async def add_subtitles_to_video(self, video_path: Path, words: List[WordTimestamp],
                                     output_path: Path, style: Optional[SubtitleStyle] = None,
                                     start_offset: float = 0.0) -> Path:
        """Burn one caption per word; long word lists render in sequential passes"""
        style = style or self.style
        video_path = Path(video_path)
        output_path = Path(output_path)
        directives = build_drawtext_directives(words, style, start_offset)

        if not directives:
            self.logger.info("No words to caption, copying video")
            stream = ffmpeg.input(str(video_path)).output(str(output_path), c='copy')
            await self.media_tool.run(stream, description=f"Copying {video_path.name}")
            return output_path

        batches = split_batches(directives, self.subtitle_config.batch_size)
        self.logger.info(f"Adding {len(directives)} subtitles in {len(batches)} pass(es)")

        intermediates = []
        source = video_path
        for index, batch in enumerate(batches):
            is_last = index == len(batches) - 1
            target = output_path if is_last else output_path.with_name(f"{output_path.stem}-pass{index}.mp4")
            script = output_path.with_name(f"{output_path.stem}-pass{index}.filter")

            inp = ffmpeg.input(str(source))
            video = apply_drawtext(inp.video, batch)
            stream = ffmpeg.output(video, inp.audio, str(target), acodec='copy', **self._encode_args())
            await self.media_tool.run(stream, description=f"Subtitles pass {index + 1}/{len(batches)}",
                                      filter_script=script)
            script.unlink(missing_ok=True)
            if not is_last:
                intermediates.append(target)
            source = target

        for path in intermediates:
            path.unlink(missing_ok=True)
        return output_path

    async def compose_scene(self, video_path: Path, narration: NarrationResult,
                            work_dir: Path, scene_number: int) -> ComposedScene:
        """Mux then caption one scene"""
        work_dir = Path(work_dir)
        muxed = work_dir / f"scene-{scene_number}-muxed.mp4"
        final = work_dir / f"scene-{scene_number}-final.mp4"

        _, plan = await self.add_audio_to_video(video_path, narration.audio_path, muxed)
        await self.add_subtitles_to_video(muxed, narration.word_timestamps, final,
                                          start_offset=narration.lead_in_padding)
        muxed.unlink(missing_ok=True)

        self.logger.info(f"✅ Composed scene {scene_number} ({plan.output_duration:.2f}s)")
        return ComposedScene(
            scene_order=narration.scene_order,
            path=final,
            duration=plan.output_duration,
            plan=plan,
        )
