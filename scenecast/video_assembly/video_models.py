"""
Video Assembly Data Models

Pydantic models for scene composition and final assembly.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple
from pydantic import BaseModel, Field
from enum import Enum


class TransitionType(str, Enum):
    """xfade transitions between consecutive scenes"""
    FADE = "fade"
    DISSOLVE = "dissolve"
    WIPE_LEFT = "wipeleft"
    WIPE_RIGHT = "wiperight"
    SLIDE_LEFT = "slideleft"
    SLIDE_RIGHT = "slideright"
    CIRCLE_OPEN = "circleopen"
    FADE_BLACK = "fadeblack"


class SubtitlePosition(str, Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


class OutlineThickness(str, Enum):
    NORMAL = "normal"
    THICK = "thick"
    EXTRA_THICK = "extra-thick"

    @property
    def border_width(self) -> int:
        return {"normal": 3, "thick": 5, "extra-thick": 8}[self.value]


SUBTITLE_Y = {
    SubtitlePosition.TOP: "100",
    SubtitlePosition.MIDDLE: "(h-text_h)/2",
    SubtitlePosition.BOTTOM: "h-text_h-100",
}

THUMBNAIL_SIZES: Dict[str, Tuple[int, int]] = {
    "16:9": (1280, 720),
    "1:1": (720, 720),
    "9:16": (720, 1280),
}
DEFAULT_THUMBNAIL_SIZE = (1280, 720)


class SubtitleStyle(BaseModel):
    """Burned-in word caption look"""
    font_size: int = Field(default=54, ge=8, le=400)
    text_color: str = "#FFD32C"
    outline_color: str = "#000000"
    outline_thickness: OutlineThickness = OutlineThickness.THICK
    position: SubtitlePosition = SubtitlePosition.MIDDLE
    font_path: Optional[str] = None

    @classmethod
    def from_config(cls, subtitles, font_path: Optional[str] = None) -> "SubtitleStyle":
        return cls(
            font_size=subtitles.font_size,
            text_color=subtitles.text_color,
            outline_color=subtitles.outline_color,
            outline_thickness=OutlineThickness(subtitles.outline_thickness),
            position=SubtitlePosition(subtitles.position),
            font_path=font_path,
        )


class ReconciliationPlan(BaseModel):
    """How a generated clip is fitted to its narration"""
    video_duration: float
    audio_duration: float
    stretch_factor: float = 1.0
    trimmed: bool = False

    @property
    def output_duration(self) -> float:
        return self.audio_duration


class ComposedScene(BaseModel):
    """A scene clip with narration muxed in and subtitles burned"""
    scene_order: int
    path: Path
    duration: float
    plan: Optional[ReconciliationPlan] = None
