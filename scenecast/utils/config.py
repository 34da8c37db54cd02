"""Configuration management for the media assembly worker"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class WorkerConfig(BaseModel):
    queue_name: str = "video-processing"
    backend: str = "memory"  # memory | redis
    redis_url: str = "redis://localhost:6379/0"
    concurrency: int = Field(default=1, ge=1, le=32)
    dequeue_timeout_seconds: int = 5
    # Generation calls are billed; a failed run must be resubmitted as a new job
    attempts: int = Field(default=1, ge=1, le=1)


class PollingConfig(BaseModel):
    interval_seconds: float = 10.0
    max_attempts: int = 120  # 20 minutes at the default interval


class ProviderEndpointConfig(BaseModel):
    base_url: str
    api_key_env: str
    auth_scheme: str = "Key"
    timeout_seconds: int = 60

    def api_key(self) -> Optional[str]:
        return os.getenv(self.api_key_env)


class ModelSpec(BaseModel):
    """A generation model reachable through a named provider"""
    name: str
    provider: str
    endpoint: str
    result_field: str = "video.url"
    content_type: str = "video/mp4"
    supported_durations: List[int] = []
    default_config: Dict[str, Any] = {}


class TTSConfig(BaseModel):
    engine: str = "elevenlabs"
    base_url: str = "https://api.elevenlabs.io"
    api_key_env: str = "ELEVENLABS_API_KEY"
    default_voice_id: str = "JBFqnCBsd6RMkjVDRZzb"
    model_id: str = "eleven_flash_v2_5"
    output_format: str = "mp3_44100_128"
    lead_in_padding_seconds: float = 0.0
    tail_padding_seconds: float = 1.0
    timeout_seconds: int = 120

    def api_key(self) -> Optional[str]:
        return os.getenv(self.api_key_env)


class MusicConfig(BaseModel):
    default_model: str = "cassette-ai"
    default_description: str = "Upbeat background music"
    seconds_per_scene: int = 5
    optimize_prompt: bool = True
    prompt_model: str = "gpt-4o-mini"
    max_prompt_chars: int = 150


class VideoConfig(BaseModel):
    fps: int = 24
    codec: str = "libx264"
    preset: str = "medium"
    crf: int = 23
    pix_fmt: str = "yuv420p"
    audio_codec: str = "aac"
    transition: str = "fade"
    transition_duration: float = 1.0
    music_volume: float = Field(default=0.3, ge=0.0, le=1.0)
    thumbnail_time_seconds: float = 1.0


class SubtitleConfig(BaseModel):
    font_size: int = 54
    text_color: str = "#FFD32C"
    outline_color: str = "#000000"
    outline_thickness: str = "thick"  # normal | thick | extra-thick
    position: str = "middle"  # top | middle | bottom
    custom_font_path: Optional[str] = None
    fonts_dir: str = "./fonts"
    batch_size: int = 250


class StorageConfig(BaseModel):
    backend: str = "local"
    root: str = "./data/storage"
    public_base_url: str = "http://localhost:8000/storage"


class PersistenceConfig(BaseModel):
    projects_dir: str = "./data/projects"


class PathsConfig(BaseModel):
    """Storage paths configuration"""
    temp: str = "./temp"
    logs: str = "./logs"


class Config(BaseModel):
    worker: WorkerConfig = WorkerConfig()
    polling: PollingConfig = PollingConfig()
    providers: Dict[str, ProviderEndpointConfig] = {}
    video_models: Dict[str, ModelSpec] = {}
    music_models: Dict[str, ModelSpec] = {}
    tts: TTSConfig = TTSConfig()
    music: MusicConfig = MusicConfig()
    video: VideoConfig = VideoConfig()
    subtitles: SubtitleConfig = SubtitleConfig()
    storage: StorageConfig = StorageConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    paths: PathsConfig = PathsConfig()
    logging: Dict[str, Any] = {}

    def get_video_model(self, model_id: str) -> Optional[ModelSpec]:
        """Get the catalog entry for a video model"""
        return self.video_models.get(model_id)

    def get_music_model(self, model_id: str) -> Optional[ModelSpec]:
        """Get the catalog entry for a music model"""
        return self.music_models.get(model_id)

    def get_available_video_models(self) -> List[str]:
        return list(self.video_models.keys())

    @classmethod
    def load(cls, config_path: str) -> "Config":
        """Load configuration from YAML file"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        config = cls(**config_data)
        config._apply_env_overrides()
        return config

    def _apply_env_overrides(self) -> None:
        """Deployment knobs that are usually set per environment"""
        if os.getenv("WORKER_CONCURRENCY"):
            self.worker.concurrency = int(os.environ["WORKER_CONCURRENCY"])
        if os.getenv("REDIS_URL"):
            self.worker.redis_url = os.environ["REDIS_URL"]
            self.worker.backend = "redis"

    def save(self, config_path: str):
        """Save configuration to YAML file"""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False)
