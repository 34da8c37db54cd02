"""Data models for narration synthesis"""

from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator


class WordTimestamp(BaseModel):
    """A spoken word (or merged display unit) with its audio span in seconds"""
    word: str
    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)

    @property
    def duration(self) -> float:
        return self.end - self.start


class CharacterAlignment(BaseModel):
    """Character-level timing returned by the TTS provider"""
    characters: List[str] = Field(default_factory=list)
    character_start_times_seconds: List[float] = Field(default_factory=list)
    character_end_times_seconds: List[float] = Field(default_factory=list)

    @model_validator(mode='after')
    def _check_lengths(self) -> "CharacterAlignment":
        n = len(self.characters)
        if len(self.character_start_times_seconds) != n or len(self.character_end_times_seconds) != n:
            raise ValueError("alignment arrays must have equal lengths")
        return self


class SpeechResult(BaseModel):
    """Raw TTS output"""
    audio: bytes
    alignment: Optional[CharacterAlignment] = None
    normalized_alignment: Optional[CharacterAlignment] = None

    @property
    def best_alignment(self) -> Optional[CharacterAlignment]:
        return self.normalized_alignment or self.alignment


class NarrationResult(BaseModel):
    """Padded narration audio for one scene plus its subtitle timing"""
    scene_order: int
    scene_id: str
    audio_path: Path
    word_timestamps: List[WordTimestamp] = Field(default_factory=list)
    duration: float
    lead_in_padding: float = 0.0
