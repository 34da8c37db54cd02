"""
Shared fixtures: fake collaborators for providers, TTS, HTTP and ffmpeg.

The fake media tool compiles the real ffmpeg-python graphs (so argument
construction is exercised) but never starts a subprocess; it writes a
placeholder output file and answers duration probes from a pattern table.
"""

import json
import re
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import ffmpeg
import pytest

from scenecast.generation.generation_models import ProviderState, ProviderStatus
from scenecast.generation.providers import GenerationProvider, ProviderRegistry
from scenecast.media_generation.media_models import CharacterAlignment, SpeechResult
from scenecast.media_generation.tts_engine import TTSProvider
from scenecast.project.project_models import (
    Breakdown, Concept, Project, ProjectStatus, Scene, Settings
)
from scenecast.project.project_store import YamlProjectStore
from scenecast.storage.storage import LocalStorage
from scenecast.utils.config import (
    Config, ModelSpec, PathsConfig, PersistenceConfig, PollingConfig,
    ProviderEndpointConfig, StorageConfig, SubtitleConfig
)
from scenecast.video_assembly.media_tool import externalize_filter_graph

requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not on PATH",
)


def output_path_of(args: List[str]) -> str:
    return args[-2] if args[-1] == '-y' else args[-1]


class FakeMediaTool:
    """Records compiled ffmpeg commands instead of running them"""

    def __init__(self, durations: Optional[Dict[str, Union[float, Callable]]] = None,
                 default_duration: float = 5.0):
        self.durations = durations or {}
        self.default_duration = default_duration
        self.commands: List[List[str]] = []
        self.descriptions: List[str] = []
        self.filter_scripts: List[str] = []

    def compile(self, stream) -> List[str]:
        return ffmpeg.compile(stream, cmd='ffmpeg', overwrite_output=True)

    async def run(self, stream_or_args, description: str = "ffmpeg", filter_script=None) -> List[str]:
        args = list(stream_or_args) if isinstance(stream_or_args, (list, tuple)) else self.compile(stream_or_args)
        if filter_script is not None:
            args = externalize_filter_graph(args, filter_script)
            self.filter_scripts.append(Path(filter_script).read_text(encoding='utf-8'))
        self.commands.append(args)
        self.descriptions.append(description)
        output = Path(output_path_of(args))
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(f"fake media: {description}".encode())
        return args

    async def probe_duration(self, path) -> float:
        name = Path(path).name
        for pattern, value in self.durations.items():
            match = re.fullmatch(pattern, name)
            if match:
                return value(match) if callable(value) else value
        return self.default_duration

    def commands_with(self, needle: str) -> List[List[str]]:
        return [c for c in self.commands if any(needle in arg for arg in c)]


class FakeResponse:
    def __init__(self, status: int = 200, json_data=None, body: bytes = b""):
        self.status = status
        self._json = json_data
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type=None):
        return self._json

    async def text(self) -> str:
        if self._body:
            return self._body.decode()
        return json.dumps(self._json)

    async def read(self) -> bytes:
        return self._body


class FakeHttpSession:
    """Routes (method, url) to canned responses; unrouted GETs return url-derived bytes"""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        handler = self.routes.get((method, url))
        if handler is None:
            return FakeResponse(200, body=f"payload of {url}".encode())
        return handler() if callable(handler) else handler

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    async def close(self):
        self.closed = True


class FakeGenerationProvider(GenerationProvider):
    """Scripted provider: each request id walks through a list of states"""

    name = "fal"

    def __init__(self, script: Optional[List[ProviderState]] = None, fail_prompts=()):
        self.script = script or [ProviderState.IN_PROGRESS, ProviderState.COMPLETED]
        self.fail_prompts = set(fail_prompts)
        self.submitted = []
        self.status_calls = []
        self._progress: Dict[str, int] = {}

    async def submit(self, model, payload):
        request_id = f"req-{len(self.submitted) + 1}"
        self.submitted.append((model.name, payload, request_id))
        self._progress[request_id] = 0
        return request_id

    async def check_status(self, model, request_id):
        self.status_calls.append(request_id)
        step = self._progress[request_id]
        self._progress[request_id] = step + 1
        state = self.script[min(step, len(self.script) - 1)]
        payload = next(p for _, p, rid in self.submitted if rid == request_id)
        if payload.get("prompt") in self.fail_prompts:
            return ProviderStatus(state=ProviderState.FAILED, error="content policy violation")
        if state == ProviderState.COMPLETED:
            return ProviderStatus(state=state, result_url=f"https://cdn.test/{request_id}.bin")
        return ProviderStatus(state=state)


def make_alignment(text: str, step: float = 0.05) -> CharacterAlignment:
    return CharacterAlignment(
        characters=list(text),
        character_start_times_seconds=[round(i * step, 4) for i in range(len(text))],
        character_end_times_seconds=[round((i + 1) * step, 4) for i in range(len(text))],
    )


class FakeTTS(TTSProvider):
    def __init__(self, fail_on: Optional[str] = None):
        self.calls = []
        self.fail_on = fail_on

    async def synthesize(self, text, voice_id):
        from scenecast.utils.errors import ProviderError
        self.calls.append((text, voice_id))
        if self.fail_on and self.fail_on in text:
            raise ProviderError("quota exceeded")
        return SpeechResult(audio=b"ID3 fake mp3", normalized_alignment=make_alignment(text))


@pytest.fixture
def fake_sleep():
    calls = []

    async def sleep(seconds):
        calls.append(seconds)

    sleep.calls = calls
    return sleep


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        polling=PollingConfig(interval_seconds=10.0, max_attempts=3),
        providers={"fal": ProviderEndpointConfig(base_url="https://queue.test", api_key_env="FAL_API_KEY")},
        video_models={
            "kling-2.1-standard": ModelSpec(
                name="Kling 2.1 Standard", provider="fal", endpoint="fal-ai/kling-video",
                default_config={"duration": "5"},
            ),
        },
        music_models={
            "cassette-ai": ModelSpec(
                name="CassetteAI", provider="fal", endpoint="CassetteAI/music-generator",
                result_field="audio_file.url", content_type="audio/wav",
            ),
        },
        subtitles=SubtitleConfig(fonts_dir=str(tmp_path / "fonts"), batch_size=250),
        storage=StorageConfig(root=str(tmp_path / "storage"), public_base_url="https://files.test"),
        persistence=PersistenceConfig(projects_dir=str(tmp_path / "projects")),
        paths=PathsConfig(temp=str(tmp_path / "temp"), logs=str(tmp_path / "logs")),
    )


@pytest.fixture
def storage(config) -> LocalStorage:
    return LocalStorage(config.storage.root, config.storage.public_base_url)


@pytest.fixture
def store(config) -> YamlProjectStore:
    return YamlProjectStore(config.persistence.projects_dir)


@pytest.fixture
def fake_provider() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@pytest.fixture
def registry(config, fake_provider) -> ProviderRegistry:
    return ProviderRegistry({"fal": fake_provider}, config.video_models, config.music_models)


@pytest.fixture
def scenes():
    return [
        Scene(id="s1", order=0, image_url="https://img.test/1.png",
              image_description="A lighthouse at dusk", voice_over="A storm rolls in."),
        Scene(id="s2", order=1, image_url="https://img.test/2.png",
              image_description="Waves crash on rocks", voice_over="The keeper lights the lamp."),
    ]


@pytest.fixture
def project(scenes) -> Project:
    return Project(
        id="proj-1",
        user_id="user-1",
        status=ProjectStatus.BREAKDOWN,
        concept=Concept(voice_id="voice-123"),
        breakdown=Breakdown(scenes=scenes, music_description="Brooding orchestral swell"),
        settings=Settings(project_name="Lighthouse", video_model="kling-2.1-standard"),
    )
