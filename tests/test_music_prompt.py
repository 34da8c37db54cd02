"""Tests for music prompt condensation"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from scenecast.generation.music_prompt import MusicPromptOptimizer, estimate_music_duration
from scenecast.utils.config import MusicConfig


def _client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        message = SimpleNamespace(content=content)
        response = SimpleNamespace(choices=[SimpleNamespace(message=message)])
        client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestMusicPromptOptimizer:

    @pytest.mark.asyncio
    async def test_uses_llm_output(self):
        client = _client('"Dark synthwave, driving bassline, 120 BPM"')
        optimizer = MusicPromptOptimizer(client, MusicConfig())

        prompt = await optimizer.optimize("A long brief about a neon city chase at night")

        assert prompt == "Dark synthwave, driving bassline, 120 BPM"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert "neon city chase" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_llm_error_falls_back_to_truncated_description(self):
        optimizer = MusicPromptOptimizer(_client(error=RuntimeError("rate limited")),
                                         MusicConfig(max_prompt_chars=10))

        assert await optimizer.optimize("Slow strings and distant choir") == "Slow strin"

    @pytest.mark.asyncio
    async def test_empty_llm_output_falls_back(self):
        optimizer = MusicPromptOptimizer(_client(""), MusicConfig())

        assert await optimizer.optimize("Soft piano") == "Soft piano"

    @pytest.mark.asyncio
    async def test_disabled_optimization_skips_llm(self):
        client = _client("ignored")
        optimizer = MusicPromptOptimizer(client, MusicConfig(optimize_prompt=False))

        assert await optimizer.optimize("Soft piano") == "Soft piano"
        client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_description_uses_default(self):
        optimizer = MusicPromptOptimizer(None, MusicConfig())

        assert await optimizer.optimize(None) == "Upbeat background music"
        assert await optimizer.optimize("   ") == "Upbeat background music"


def test_music_duration_scales_with_scene_count():
    assert estimate_music_duration(4) == 20
    assert estimate_music_duration(3, seconds_per_scene=8) == 24
    assert estimate_music_duration(0) == 5
