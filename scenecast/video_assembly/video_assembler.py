"""
Video Assembler

Final assembly of composed scenes:
- Cross-transition concatenation in scene order
- Looped background music under the narration
- Thumbnail extraction sized by aspect ratio
"""

import logging
import shutil
from pathlib import Path
from typing import List, Sequence, Union

import ffmpeg

from .media_tool import MediaTool
from .video_models import DEFAULT_THUMBNAIL_SIZE, THUMBNAIL_SIZES, TransitionType
from ..utils.config import VideoConfig
from ..utils.errors import MediaProcessingError

# large enough that aloop repeats the whole music file
MUSIC_LOOP_SIZE = 2000000000


def clamp_transition(duration: float, clip_durations: Sequence[float]) -> float:
    """A transition may not consume more than half of the shortest clip"""
    if not clip_durations:
        return duration
    return max(0.0, min(duration, min(clip_durations) / 2))


def transition_offsets(clip_durations: Sequence[float], transition_duration: float) -> List[float]:
    """xfade offsets for chaining clips: one per consecutive pair"""
    offsets = []
    elapsed = 0.0
    for index, duration in enumerate(clip_durations[:-1]):
        elapsed += duration
        offsets.append(elapsed - (index + 1) * transition_duration)
    return offsets


class VideoAssembler:
    """Concatenation, music mixing and thumbnails"""

    def __init__(self, media_tool: MediaTool, config: VideoConfig):
        self.media_tool = media_tool
        self.config = config
        self.logger = logging.getLogger('scenecast.video_assembler')

    def build_combine_stream(self, clips: Sequence[Path], clip_durations: Sequence[float],
                             output_path: Path, transition: Union[str, TransitionType],
                             transition_duration: float):
        """xfade / acrossfade chain over N >= 2 clips"""
        transition = TransitionType(transition).value
        offsets = transition_offsets(clip_durations, transition_duration)

        inputs = [ffmpeg.input(str(clip)) for clip in clips]
        videos = [
            inp.video
            .filter('fps', fps=self.config.fps)
            .filter('settb', 'AVTB')
            .filter('format', self.config.pix_fmt)
            for inp in inputs
        ]
        audios = [inp.audio for inp in inputs]

        video = videos[0]
        audio = audios[0]
        for index in range(1, len(inputs)):
            video = ffmpeg.filter([video, videos[index]], 'xfade',
                                  transition=transition,
                                  duration=f"{transition_duration:.3f}",
                                  offset=f"{offsets[index - 1]:.3f}")
            audio = ffmpeg.filter([audio, audios[index]], 'acrossfade',
                                  d=f"{transition_duration:.3f}")

        return ffmpeg.output(
            video, audio, str(output_path),
            vcodec=self.config.codec,
            preset=self.config.preset,
            crf=self.config.crf,
            pix_fmt=self.config.pix_fmt,
            r=self.config.fps,
            acodec=self.config.audio_codec,
        )

    async def combine_videos(self, clips: Sequence[Path], output_path: Path,
                             transition: Union[str, TransitionType] = TransitionType.FADE,
                             transition_duration: float = 1.0) -> Path:
        """Concatenate clips in the given order with N-1 cross transitions"""
        output_path = Path(output_path)
        if not clips:
            raise MediaProcessingError("No videos to combine")

        if len(clips) == 1:
            self.logger.info("Single scene, copying without transitions")
            shutil.copyfile(clips[0], output_path)
            return output_path

        durations = [await self.media_tool.probe_duration(clip) for clip in clips]
        duration = clamp_transition(transition_duration, durations)
        if duration != transition_duration:
            self.logger.warning(f"Transition shortened to {duration:.2f}s to fit the shortest clip")

        self.logger.info(f"Combining {len(clips)} videos with {TransitionType(transition).value} transitions")
        stream = self.build_combine_stream(clips, durations, output_path, transition, duration)
        await self.media_tool.run(stream, description=f"Combining {len(clips)} scenes")
        return output_path

    async def add_music_to_video(self, video_path: Path, music_path: Path, output_path: Path,
                                 volume: float = 0.3) -> Path:
        """Mix looped, attenuated music under the narration; picture is stream-copied"""
        video_in = ffmpeg.input(str(video_path))
        music_in = ffmpeg.input(str(music_path))

        narration = video_in.audio.filter('volume', 1)
        music = music_in.audio.filter('volume', volume).filter('aloop', loop=-1, size=MUSIC_LOOP_SIZE)
        # normalize=0 keeps narration at full volume instead of halving both inputs
        mixed = ffmpeg.filter([narration, music], 'amix', inputs=2, duration='first', normalize=0)

        stream = ffmpeg.output(video_in.video, mixed, str(output_path),
                               vcodec='copy', acodec=self.config.audio_codec)
        await self.media_tool.run(stream, description="Mixing background music")
        return Path(output_path)

    async def generate_thumbnail(self, video_path: Path, output_path: Path,
                                 at_seconds: float = 1.0, aspect_ratio: str = "16:9") -> Path:
        """Extract a single frame scaled to the aspect ratio's preset"""
        ratio = getattr(aspect_ratio, "value", aspect_ratio)
        width, height = THUMBNAIL_SIZES.get(ratio, DEFAULT_THUMBNAIL_SIZE)
        stream = (
            ffmpeg
            .input(str(video_path), ss=at_seconds)
            .video
            .filter('scale', width, height)
            .output(str(output_path), vframes=1)
        )
        await self.media_tool.run(stream, description=f"Generating {width}x{height} thumbnail")
        return Path(output_path)
