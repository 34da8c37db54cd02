from .context import PipelineContext, build_context
from .video_pipeline import VideoPipeline

__all__ = ['PipelineContext', 'build_context', 'VideoPipeline']
