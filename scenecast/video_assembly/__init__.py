"""
Video Assembly Module

Scene composition and final assembly:
- Audio/video duration reconciliation
- Word-by-word burned-in subtitles
- Cross-transition concatenation and music mixing
"""

from .media_tool import MediaTool
from .scene_compositor import SceneCompositor
from .video_assembler import VideoAssembler
from .video_models import TransitionType, SubtitleStyle, ReconciliationPlan, ComposedScene

__all__ = [
    'MediaTool',
    'SceneCompositor',
    'VideoAssembler',
    'TransitionType',
    'SubtitleStyle',
    'ReconciliationPlan',
    'ComposedScene'
]
