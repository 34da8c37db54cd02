"""
Async runner for ffmpeg / ffprobe

Filter graphs are built with ffmpeg-python and compiled to an argument list
once; the subprocess itself runs through asyncio so a worker slot suspends
instead of blocking while media is rendered.
"""

import asyncio
import functools
import logging
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Union

import ffmpeg

from ..utils.errors import MediaProcessingError

STDERR_TAIL_CHARS = 2000


def externalize_filter_graph(args: Sequence[str], script_path: Union[str, Path]) -> List[str]:
    """Move an inline `-filter_complex` graph into a script file.

    Long drawtext chains exceed command-line limits, so the graph text is
    written verbatim to `script_path` and referenced with
    `-filter_complex_script`.
    """
    args = list(args)
    if '-filter_complex' not in args:
        return args
    index = args.index('-filter_complex')
    script_path = Path(script_path)
    script_path.write_text(args[index + 1], encoding='utf-8')
    args[index] = '-filter_complex_script'
    args[index + 1] = str(script_path)
    return args


class MediaTool:
    """Runs compiled ffmpeg commands and probes media durations"""

    def __init__(self, ffmpeg_cmd: str = 'ffmpeg', ffprobe_cmd: str = 'ffprobe'):
        self.ffmpeg_cmd = ffmpeg_cmd
        self.ffprobe_cmd = ffprobe_cmd
        self.logger = logging.getLogger('scenecast.media_tool')

    def is_available(self) -> bool:
        return shutil.which(self.ffmpeg_cmd) is not None and shutil.which(self.ffprobe_cmd) is not None

    def compile(self, stream) -> List[str]:
        """Turn an ffmpeg-python output node into an argument list"""
        return ffmpeg.compile(stream, cmd=self.ffmpeg_cmd, overwrite_output=True)

    async def run(self, stream_or_args, description: str = "ffmpeg",
                  filter_script: Optional[Union[str, Path]] = None) -> List[str]:
        """Execute an ffmpeg command, raising MediaProcessingError on non-zero exit.

        Args:
            stream_or_args: ffmpeg-python output node or a ready argument list
            description: label used in logs and error messages
            filter_script: when given, the filter graph is passed via this file

        Returns:
            The argument list that was executed
        """
        if isinstance(stream_or_args, (list, tuple)):
            args = list(stream_or_args)
        else:
            args = self.compile(stream_or_args)
        if filter_script is not None:
            args = externalize_filter_graph(args, filter_script)

        self.logger.info(f"🎞️ {description}")
        self.logger.debug(' '.join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise MediaProcessingError(f"{description} failed to start: {e}", command=args) from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            # the child outlives the task otherwise
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        if process.returncode != 0:
            tail = stderr.decode('utf-8', errors='replace')[-STDERR_TAIL_CHARS:]
            self.logger.error(f"FFmpeg error during {description}: {tail}")
            raise MediaProcessingError(
                f"{description} failed with exit code {process.returncode}: {tail.strip()[-300:]}",
                command=args,
                stderr=tail,
            )
        return args

    async def probe(self, path: Union[str, Path]) -> dict:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, functools.partial(ffmpeg.probe, str(path), cmd=self.ffprobe_cmd)
            )
        except ffmpeg.Error as e:
            stderr = e.stderr.decode('utf-8', errors='replace') if e.stderr else str(e)
            raise MediaProcessingError(f"ffprobe failed for {path}: {stderr[-300:]}",
                                       command=[self.ffprobe_cmd, str(path)], stderr=stderr) from e
        except OSError as e:
            raise MediaProcessingError(f"ffprobe failed to start for {path}: {e}") from e

    async def probe_duration(self, path: Union[str, Path]) -> float:
        """Container duration in seconds, falling back to the first stream that has one"""
        info = await self.probe(path)
        duration = info.get('format', {}).get('duration')
        if duration is None:
            for stream in info.get('streams', []):
                if stream.get('duration') is not None:
                    duration = stream['duration']
                    break
        if duration is None:
            raise MediaProcessingError(f"Could not determine duration of {path}")
        return float(duration)
